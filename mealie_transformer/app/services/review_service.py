"""The recipe under review: one slot in the session store, edited until published."""

import logging
from typing import Awaitable, Callable, Literal, Optional

import httpx
from pydantic import ValidationError

from mealie_transformer.app.core.errors import (
    ExtractionFailedError,
    InvalidInputError,
    RecipeNotFoundError,
)
from mealie_transformer.app.schemas.recipe import MeasurementSystem, PublishResult, StructuredRecipe
from mealie_transformer.app.schemas.settings import UserSettings
from mealie_transformer.app.services import mealie_client
from mealie_transformer.app.services.llm_client import LLMClient, LLMServiceError, recipe_to_text
from mealie_transformer.app.services.session_store import SessionStore

logger = logging.getLogger(__name__)

CURRENT_RECIPE_KEY = "recipe"

ItemList = Literal["ingredients", "instructions"]


def get_current(store: SessionStore) -> StructuredRecipe:
    raw = store.get(CURRENT_RECIPE_KEY)
    if not raw:
        raise RecipeNotFoundError()
    try:
        return StructuredRecipe.model_validate(raw)
    except ValidationError as exc:
        logger.warning("Discarding unreadable recipe slot: %s", exc)
        store.delete(CURRENT_RECIPE_KEY)
        raise RecipeNotFoundError() from exc


def save_current(store: SessionStore, recipe: StructuredRecipe) -> StructuredRecipe:
    store.set(CURRENT_RECIPE_KEY, recipe.model_dump(mode="json"))
    return recipe


def clear_current(store: SessionStore) -> None:
    store.delete(CURRENT_RECIPE_KEY)


def _checked_text(text: str) -> str:
    if text is None or not text.strip():
        raise InvalidInputError("Text cannot be empty.")
    return text.strip()


def _checked_index(items: list, index: int, list_name: str) -> int:
    if index < 0 or index >= len(items):
        raise InvalidInputError(f"No {list_name} entry at position {index}.")
    return index


def append_item(store: SessionStore, list_name: ItemList, text: str) -> StructuredRecipe:
    recipe = get_current(store)
    items = list(getattr(recipe, list_name))
    items.append(_checked_text(text))
    return save_current(store, recipe.model_copy(update={list_name: items}))


def update_item(store: SessionStore, list_name: ItemList, index: int, text: str) -> StructuredRecipe:
    recipe = get_current(store)
    items = list(getattr(recipe, list_name))
    items[_checked_index(items, index, list_name)] = _checked_text(text)
    return save_current(store, recipe.model_copy(update={list_name: items}))


def remove_item(store: SessionStore, list_name: ItemList, index: int) -> StructuredRecipe:
    recipe = get_current(store)
    items = list(getattr(recipe, list_name))
    del items[_checked_index(items, index, list_name)]
    return save_current(store, recipe.model_copy(update={list_name: items}))


async def _rewrite_current(
    store: SessionStore,
    llm: LLMClient,
    rewrite: Callable[[str], Awaitable[str]],
    action: str,
) -> StructuredRecipe:
    recipe = get_current(store)
    try:
        rewritten = await rewrite(recipe_to_text(recipe))
        restructured = await llm.extract_recipe(rewritten)
    except (LLMServiceError, ValueError) as exc:
        logger.warning("Quick fix %s failed: %s", action, exc)
        raise ExtractionFailedError(f"Could not {action} the recipe.") from exc
    if not restructured.has_content():
        raise ExtractionFailedError(f"Could not {action} the recipe.")

    updated = restructured.model_copy(
        update={
            "title": restructured.title or recipe.title,
            "source": recipe.source,
            "image": recipe.image,
        }
    )
    logger.info("Quick fix %s applied: ingredients=%d, instructions=%d", action, len(updated.ingredients), len(updated.instructions))
    return save_current(store, updated)


async def translate_current(store: SessionStore, llm: LLMClient, target_language: str) -> StructuredRecipe:
    if not target_language or not target_language.strip():
        raise InvalidInputError("Target language cannot be empty.")
    return await _rewrite_current(
        store, llm, lambda text: llm.translate_text(text, target_language.strip()), "translate"
    )


async def convert_current_units(
    store: SessionStore, llm: LLMClient, measurement_system: MeasurementSystem
) -> StructuredRecipe:
    return await _rewrite_current(
        store, llm, lambda text: llm.convert_units_text(text, measurement_system), "convert units in"
    )


async def publish_current(
    store: SessionStore,
    user_settings: UserSettings,
    timeout_seconds: float = 30.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> PublishResult:
    """Send the recipe under review to Mealie; the slot is cleared only on success."""
    recipe = get_current(store)
    result = await mealie_client.create_recipe(
        recipe,
        mealie_url=user_settings.mealie_url,
        api_token=user_settings.mealie_api_token,
        timeout_seconds=timeout_seconds,
        transport=transport,
    )
    clear_current(store)
    return result
