"""Reduce fetched page markup to the parts worth sending to the model."""

import json
import logging
import re
from typing import Any, Iterable, List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"<[a-z]+[^>]*>", re.I)


def clean_text(text: str) -> str:
    """Normalize whitespace in text."""
    return re.sub(r"\s+", " ", text or "").strip()


def clean_soup_for_content(soup: BeautifulSoup) -> None:
    """Remove obvious boilerplate nodes before extracting candidate content."""
    for noisy in soup.find_all(["header", "footer", "nav", "aside", "form"]):
        noisy.decompose()
    for tag in soup.find_all(["script", "style", "noscript", "link", "meta", "svg", "iframe"]):
        tag.decompose()


def find_main_node(soup: BeautifulSoup):
    return (
        soup.find(attrs={"itemtype": re.compile("Recipe", re.I)})
        or soup.find("article")
        or soup.find("main")
        or soup.body
    )


def _json_ld_blocks(soup: BeautifulSoup) -> List[str]:
    blocks: List[str] = []
    for script in soup.find_all("script", type="application/ld+json"):
        txt = script.get_text(strip=True)
        if txt:
            blocks.append(txt)
    return blocks


def condense_markup(html: str, max_chars: int = 20000) -> str:
    """Keep the page title, JSON-LD blocks and the main content text.

    Input that does not look like markup is only truncated.
    """
    if not html or not _TAG_RE.search(html[:5000]):
        return (html or "")[:max_chars]

    soup = BeautifulSoup(html, "lxml")
    title_tag = soup.find("h1") or soup.title
    title = clean_text(title_tag.get_text()) if title_tag else None
    script_texts = _json_ld_blocks(soup)

    clean_soup_for_content(soup)
    main_node = find_main_node(soup)

    parts: List[str] = []
    if title:
        parts.append(f"Title: {title}")
    if script_texts:
        parts.append("Structured data:\n" + "\n".join(t[:6000] for t in script_texts))
    if main_node is not None:
        text = main_node.get_text("\n", strip=True)
        text = re.sub(r"\n{2,}", "\n", text)
        if text:
            parts.append("Page content:\n" + text)

    combined = "\n\n".join(parts)[:max_chars]
    logger.info(
        "Condensed markup: in_chars=%d, out_chars=%d, json_ld_blocks=%d",
        len(html),
        len(combined),
        len(script_texts),
    )
    return combined


def _image_value(value: Any) -> Optional[str]:
    """Extract image URL from various schema.org image formats."""
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        url = value.get("url") or value.get("contentUrl")
        return url if isinstance(url, str) else None
    if isinstance(value, list):
        for item in value:
            found = _image_value(item)
            if found:
                return found
    return None


def _walk_ld(node: Any) -> Iterable[dict]:
    if isinstance(node, list):
        for item in node:
            yield from _walk_ld(item)
    elif isinstance(node, dict):
        yield node
        if "@graph" in node:
            yield from _walk_ld(node["@graph"])


def _is_recipe_node(node: dict) -> bool:
    node_type = node.get("@type")
    if isinstance(node_type, list):
        return "Recipe" in node_type
    return node_type == "Recipe"


def find_page_image(html: str, base_url: str) -> Optional[str]:
    """Return the page's recipe image: JSON-LD Recipe image, then og:image, then twitter:image."""
    if not html:
        return None
    soup = BeautifulSoup(html, "lxml")

    for block in _json_ld_blocks(soup):
        try:
            data = json.loads(block)
        except json.JSONDecodeError:
            continue
        for node in _walk_ld(data):
            if _is_recipe_node(node):
                image = _image_value(node.get("image"))
                if image:
                    return urljoin(base_url, image)

    for attrs in ({"property": "og:image"}, {"name": "twitter:image"}):
        meta = soup.find("meta", attrs=attrs)
        if meta and meta.get("content"):
            return urljoin(base_url, meta["content"].strip())
    return None
