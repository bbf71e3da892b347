import httpx
import pytest

from mealie_transformer.app.core.errors import InvalidInputError, SourceUnreachableError
from mealie_transformer.app.services.content_fetcher import decode_markup, fetch_html, is_absolute_http_url


def make_transport(status=200, body=b"<html><body><h1>Soup</h1></body></html>", content_type="text/html"):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(status, headers={"content-type": content_type}, content=body)

    transport = httpx.MockTransport(handler)
    transport.seen = seen
    return transport


@pytest.mark.asyncio
async def test_fetch_returns_markup():
    transport = make_transport()

    html = await fetch_html("https://example.com/soup", transport=transport)

    assert "<h1>Soup</h1>" in html
    assert len(transport.seen) == 1
    assert transport.seen[0].method == "GET"
    assert "Mozilla" in transport.seen[0].headers["user-agent"]


@pytest.mark.asyncio
async def test_fetch_follows_redirects():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/old":
            return httpx.Response(301, headers={"location": "https://example.com/new"})
        return httpx.Response(200, headers={"content-type": "text/html"}, content=b"<p>moved here</p>")

    html = await fetch_html("https://example.com/old", transport=httpx.MockTransport(handler))

    assert "moved here" in html


@pytest.mark.asyncio
async def test_fetch_404_raises_source_unreachable_with_status():
    transport = make_transport(status=404, body=b"nope")

    with pytest.raises(SourceUnreachableError) as exc_info:
        await fetch_html("https://example.com/missing", transport=transport)

    assert exc_info.value.status_code == 404
    assert exc_info.value.reason == "Not Found"
    assert len(transport.seen) == 1


@pytest.mark.asyncio
async def test_fetch_network_error_raises_source_unreachable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(SourceUnreachableError) as exc_info:
        await fetch_html("https://example.com/down", transport=httpx.MockTransport(handler))

    assert exc_info.value.status_code is None
    assert "connection refused" in exc_info.value.reason


@pytest.mark.asyncio
async def test_fetch_rejects_relative_url():
    with pytest.raises(InvalidInputError):
        await fetch_html("/recipes/soup")


def test_decode_markup_uses_declared_charset():
    body = "<p>Crème brûlée</p>".encode("latin-1")

    assert decode_markup(body, "text/html; charset=ISO-8859-1") == "<p>Crème brûlée</p>"


def test_decode_markup_falls_back_to_meta_charset():
    body = '<meta charset="windows-1252"><p>Café</p>'.encode("cp1252")

    assert "Café" in decode_markup(body, "text/html")


@pytest.mark.parametrize(
    "url,expected",
    [
        ("https://example.com/a", True),
        ("http://example.com", True),
        ("example.com", False),
        ("mailto:chef@example.com", False),
        ("http://exa[mple.com/r", False),
        ("", False),
    ],
)
def test_is_absolute_http_url(url, expected):
    assert is_absolute_http_url(url) is expected
