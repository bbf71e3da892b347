from typing import Literal, Optional

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel

from mealie_transformer.app.api.deps import get_llm_client, get_session_store, get_user_settings
from mealie_transformer.app.core.config import get_settings
from mealie_transformer.app.schemas.recipe import MeasurementSystem, PublishResult, RecipeItem, StructuredRecipe
from mealie_transformer.app.schemas.settings import UserSettings
from mealie_transformer.app.services import review_service
from mealie_transformer.app.services.llm_client import LLMClient
from mealie_transformer.app.services.session_store import SessionStore

router = APIRouter(prefix="/recipes/current", tags=["review"])

ItemList = Literal["ingredients", "instructions"]


class TranslateRequest(BaseModel):
    target_language: Optional[str] = None


class ConvertUnitsRequest(BaseModel):
    measurement_system: Optional[MeasurementSystem] = None


@router.get("", response_model=StructuredRecipe)
def get_current_recipe(store: SessionStore = Depends(get_session_store)):
    return review_service.get_current(store)


@router.put("", response_model=StructuredRecipe)
def replace_current_recipe(payload: StructuredRecipe, store: SessionStore = Depends(get_session_store)):
    return review_service.save_current(store, payload)


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
def clear_current_recipe(store: SessionStore = Depends(get_session_store)):
    review_service.clear_current(store)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/translate", response_model=StructuredRecipe)
async def translate_current_recipe(
    payload: TranslateRequest,
    store: SessionStore = Depends(get_session_store),
    llm: LLMClient = Depends(get_llm_client),
    user_settings: UserSettings = Depends(get_user_settings),
):
    target_language = payload.target_language or user_settings.target_language
    return await review_service.translate_current(store, llm, target_language)


@router.post("/convert-units", response_model=StructuredRecipe)
async def convert_current_recipe_units(
    payload: ConvertUnitsRequest,
    store: SessionStore = Depends(get_session_store),
    llm: LLMClient = Depends(get_llm_client),
    user_settings: UserSettings = Depends(get_user_settings),
):
    measurement_system = payload.measurement_system or user_settings.measurement_system
    return await review_service.convert_current_units(store, llm, measurement_system)


@router.post("/publish", response_model=PublishResult)
async def publish_current_recipe(
    store: SessionStore = Depends(get_session_store),
    user_settings: UserSettings = Depends(get_user_settings),
):
    return await review_service.publish_current(
        store, user_settings, timeout_seconds=get_settings().mealie_timeout_seconds
    )


@router.post("/{list_name}", response_model=StructuredRecipe, status_code=status.HTTP_201_CREATED)
def append_item(list_name: ItemList, payload: RecipeItem, store: SessionStore = Depends(get_session_store)):
    return review_service.append_item(store, list_name, payload.text)


@router.put("/{list_name}/{index}", response_model=StructuredRecipe)
def update_item(
    list_name: ItemList, index: int, payload: RecipeItem, store: SessionStore = Depends(get_session_store)
):
    return review_service.update_item(store, list_name, index, payload.text)


@router.delete("/{list_name}/{index}", response_model=StructuredRecipe)
def remove_item(list_name: ItemList, index: int, store: SessionStore = Depends(get_session_store)):
    return review_service.remove_item(store, list_name, index)
