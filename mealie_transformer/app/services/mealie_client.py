"""
Client for creating recipes in a Mealie instance.

Recipes are sent as a schema.org Recipe document through Mealie's
``/api/recipes/create/html-or-json`` endpoint, which answers with the slug of
the created recipe.
"""
import json
import logging
from typing import Any, Dict, Optional

import httpx

from mealie_transformer.app.core.errors import InvalidInputError, PublishFailedError
from mealie_transformer.app.schemas.recipe import PublishResult, StructuredRecipe

logger = logging.getLogger(__name__)

CREATE_RECIPE_PATH = "/api/recipes/create/html-or-json"


def to_schema_org(recipe: StructuredRecipe) -> Dict[str, Any]:
    """Build the schema.org Recipe document; empty optional fields are left out."""
    doc: Dict[str, Any] = {
        "@context": "https://schema.org",
        "@type": "Recipe",
        "name": recipe.title.strip(),
    }
    optional = {
        "description": recipe.description,
        "image": recipe.image,
        "recipeYield": recipe.servings,
        "prepTime": recipe.prep_time,
        "totalTime": recipe.cooking_time,
        "org_url": recipe.source,
    }
    for key, value in optional.items():
        if value is not None and str(value).strip():
            doc[key] = str(value).strip()
    doc["recipeIngredient"] = list(recipe.ingredients)
    doc["recipeInstructions"] = [{"@type": "HowToStep", "text": step} for step in recipe.instructions]
    return doc


def _error_detail(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:500] or resp.reason_phrase
    if isinstance(body, dict):
        detail = body.get("detail") or body.get("message")
        if isinstance(detail, dict):
            detail = detail.get("message") or json.dumps(detail)
        elif isinstance(detail, list):
            detail = "; ".join(str(d.get("msg", d)) if isinstance(d, dict) else str(d) for d in detail)
        if detail:
            return str(detail)
    return resp.text[:500] or resp.reason_phrase


async def create_recipe(
    recipe: StructuredRecipe,
    mealie_url: Optional[str],
    api_token: Optional[str],
    timeout_seconds: float = 30.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> PublishResult:
    if not mealie_url or not api_token:
        raise InvalidInputError("Mealie is not configured. Please set your Mealie URL and API token in the settings.")
    if not recipe.title or not recipe.title.strip():
        raise InvalidInputError("Title is required.")

    url = f"{mealie_url.rstrip('/')}{CREATE_RECIPE_PATH}"
    payload = {
        "includeTags": False,
        "data": json.dumps(to_schema_org(recipe), ensure_ascii=False),
    }
    headers = {
        "Authorization": f"Bearer {api_token}",
        "Content-Type": "application/json",
        "Accept": "application/json",
    }

    try:
        timeout = httpx.Timeout(timeout_seconds, connect=10.0)
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            resp = await client.post(url, json=payload, headers=headers)
    except httpx.HTTPError as exc:
        logger.warning("Mealie request failed: %s", exc)
        raise PublishFailedError(str(exc) or exc.__class__.__name__) from exc

    if not resp.is_success:
        detail = _error_detail(resp)
        logger.warning("Mealie returned error: status=%s, detail=%s", resp.status_code, detail)
        raise PublishFailedError(detail, status_code=resp.status_code)

    slug: Optional[str] = None
    try:
        body = resp.json()
        if isinstance(body, str):
            slug = body
        elif isinstance(body, dict):
            slug = body.get("slug")
    except ValueError:
        slug = resp.text.strip().strip('"') or None

    logger.info("Recipe published to Mealie: title=%s, slug=%s", recipe.title, slug)
    return PublishResult(slug=slug)
