import json

import httpx
import pytest

from mealie_transformer.app.schemas.recipe import StructuredRecipe
from mealie_transformer.app.services.llm_client import (
    LLMClient,
    LLMServiceError,
    coerce_structured_recipe,
    parse_json_object,
    recipe_to_text,
)


def make_llm(content, status=200, seen=None, body=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        if body is not None:
            return httpx.Response(status, json=body)
        return httpx.Response(status, json={"choices": [{"message": {"content": content}}]})

    return LLMClient(
        base_url="http://llm-proxy/",
        api_key="secret",
        model_name="text-model",
        vision_model_name="vision-model",
        transport=httpx.MockTransport(handler),
    )


def test_parse_json_object_strips_fences_and_prose():
    raw = 'Sure! Here it is:\n```json\n{"title": "Soup"}\n```'

    assert parse_json_object(raw) == {"title": "Soup"}


def test_parse_json_object_rejects_non_json():
    with pytest.raises(ValueError):
        parse_json_object("no json here")


def test_coerce_accepts_schema_org_keys_and_envelopes():
    recipe = coerce_structured_recipe(
        {
            "recipe": {
                "name": "Bread",
                "recipeYield": 2,
                "cookTime": "45 min",
                "recipeIngredient": ["500 g flour", {"value": "10 g salt"}, "  "],
                "steps": [{"text": "Knead."}, "Bake."],
            }
        }
    )

    assert recipe.title == "Bread"
    assert recipe.servings == "2"
    assert recipe.cooking_time == "45 min"
    assert recipe.ingredients == ["500 g flour", "10 g salt"]
    assert recipe.instructions == ["Knead.", "Bake."]
    assert recipe.prep_time is None


def test_coerce_raises_on_error_object():
    with pytest.raises(ValueError):
        coerce_structured_recipe({"error": "no_recipe"})


@pytest.mark.asyncio
async def test_transform_posts_chat_completion_and_parses_recipe():
    seen = []
    content = json.dumps(
        {
            "title": "Soupe",
            "prepTime": "10 min",
            "cookingTime": "30 min",
            "servings": "4",
            "ingredients": ["500 g de tomates", "1 oignon"],
            "instructions": ["Couper.", "Mijoter."],
        }
    )
    llm = make_llm(content, seen=seen)

    recipe = await llm.transform("<html>soup</html>", "French", "metric")

    assert recipe.title == "Soupe"
    assert recipe.prep_time == "10 min"
    assert recipe.ingredients == ["500 g de tomates", "1 oignon"]
    request = seen[0]
    assert str(request.url) == "http://llm-proxy/v1/chat/completions"
    assert request.headers["authorization"] == "Bearer secret"
    payload = json.loads(request.content)
    assert payload["model"] == "text-model"
    assert payload["response_format"] == {"type": "json_object"}
    assert "French" in payload["messages"][0]["content"]
    assert "<html>soup</html>" in payload["messages"][1]["content"]


@pytest.mark.asyncio
async def test_extract_text_from_images_sends_every_image_in_order():
    seen = []
    llm = make_llm(json.dumps({"recipeText": "page one\npage two"}), seen=seen)
    uris = ["data:image/jpeg;base64,AAA=", "data:image/jpeg;base64,BBB=", "data:image/jpeg;base64,CCC="]

    text = await llm.extract_text_from_images(uris)

    assert text == "page one\npage two"
    payload = json.loads(seen[0].content)
    assert payload["model"] == "vision-model"
    parts = payload["messages"][1]["content"]
    assert [p["image_url"]["url"] for p in parts if p["type"] == "image_url"] == uris


@pytest.mark.asyncio
async def test_http_error_raises_llm_service_error():
    llm = make_llm("", status=503)

    with pytest.raises(LLMServiceError):
        await llm.transform("text", "English", "us")


@pytest.mark.asyncio
async def test_provider_error_body_raises_llm_service_error():
    llm = make_llm(None, body={"error": {"type": "rate_limited", "message": "slow down"}})

    with pytest.raises(LLMServiceError) as exc_info:
        await llm.transform("text", "English", "us")

    assert "rate_limited" in str(exc_info.value)


@pytest.mark.asyncio
async def test_missing_base_url_raises_llm_service_error():
    llm = LLMClient(base_url=None)

    with pytest.raises(LLMServiceError):
        await llm.extract_recipe("text")


@pytest.mark.asyncio
async def test_translate_and_convert_return_text():
    translated = await make_llm(json.dumps({"translatedRecipe": "Titel: Suppe"})).translate_text("Title: Soup", "German")
    converted = await make_llm(json.dumps({"convertedRecipeText": "2 cups milk"})).convert_units_text("500 ml milk", "us")

    assert translated == "Titel: Suppe"
    assert converted == "2 cups milk"


@pytest.mark.asyncio
async def test_translate_without_text_raises():
    with pytest.raises(LLMServiceError):
        await make_llm(json.dumps({"translatedRecipe": ""})).translate_text("Title: Soup", "German")


def test_recipe_to_text_lists_sections_in_order():
    recipe = StructuredRecipe(
        title="Soup",
        servings="2",
        ingredients=["water", "salt"],
        instructions=["Boil.", "Season."],
    )

    text = recipe_to_text(recipe)

    assert text.splitlines() == [
        "Title: Soup",
        "Servings: 2",
        "Ingredients:",
        "water",
        "salt",
        "Instructions:",
        "Boil.",
        "Season.",
    ]
