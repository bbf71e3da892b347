import json

import httpx
import pytest

from conftest import make_recipe
from mealie_transformer.app.core.errors import InvalidInputError, PublishFailedError
from mealie_transformer.app.schemas.recipe import StructuredRecipe
from mealie_transformer.app.services.mealie_client import create_recipe, to_schema_org


def make_transport(status=201, body="tomato-soup", seen=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status, json=body)

    return httpx.MockTransport(handler)


def test_schema_org_serializes_every_populated_field():
    recipe = make_recipe(source="https://example.com/r1", image="https://example.com/soup.jpg")

    doc = to_schema_org(recipe)

    assert doc["@type"] == "Recipe"
    assert doc["name"] == "Tomato Soup"
    assert doc["description"] == "A simple soup"
    assert doc["recipeYield"] == "4"
    assert doc["prepTime"] == "10 min"
    assert doc["totalTime"] == "30 min"
    assert doc["org_url"] == "https://example.com/r1"
    assert doc["image"] == "https://example.com/soup.jpg"
    assert doc["recipeIngredient"] == ["500 g tomatoes", "1 onion", "500 ml stock"]
    assert doc["recipeInstructions"] == [
        {"@type": "HowToStep", "text": "Chop the onion."},
        {"@type": "HowToStep", "text": "Simmer everything."},
        {"@type": "HowToStep", "text": "Blend until smooth."},
    ]


def test_schema_org_omits_missing_optional_fields():
    doc = to_schema_org(StructuredRecipe(title="Toast", ingredients=["bread"], instructions=["Toast it."]))

    for key in ("description", "image", "recipeYield", "prepTime", "totalTime", "org_url"):
        assert key not in doc
    assert "undefined" not in json.dumps(doc)
    assert "None" not in json.dumps(doc)


@pytest.mark.asyncio
async def test_create_recipe_posts_to_mealie():
    seen = []

    result = await create_recipe(
        make_recipe(source="https://example.com/r1"),
        mealie_url="https://mealie.local/",
        api_token="token-123",
        transport=make_transport(seen=seen),
    )

    assert result.slug == "tomato-soup"
    request = seen[0]
    assert str(request.url) == "https://mealie.local/api/recipes/create/html-or-json"
    assert request.headers["authorization"] == "Bearer token-123"
    body = json.loads(request.content)
    assert body["includeTags"] is False
    doc = json.loads(body["data"])
    assert doc["name"] == "Tomato Soup"
    assert doc["org_url"] == "https://example.com/r1"


@pytest.mark.asyncio
async def test_create_recipe_reports_status_and_detail():
    transport = make_transport(status=401, body={"detail": "Not authenticated"})

    with pytest.raises(PublishFailedError) as exc_info:
        await create_recipe(make_recipe(), "https://mealie.local", "bad", transport=transport)

    assert exc_info.value.status_code == 401
    assert exc_info.value.detail == "Not authenticated"
    assert "401" in exc_info.value.message


@pytest.mark.asyncio
async def test_create_recipe_network_error():
    def handler(request):
        raise httpx.ConnectError("no route to host", request=request)

    with pytest.raises(PublishFailedError) as exc_info:
        await create_recipe(make_recipe(), "https://mealie.local", "t", transport=httpx.MockTransport(handler))

    assert exc_info.value.status_code is None


@pytest.mark.asyncio
async def test_create_recipe_requires_configuration():
    with pytest.raises(InvalidInputError):
        await create_recipe(make_recipe(), mealie_url=None, api_token="t")


@pytest.mark.asyncio
async def test_create_recipe_requires_title():
    with pytest.raises(InvalidInputError):
        await create_recipe(make_recipe(title=" "), "https://mealie.local", "t")
