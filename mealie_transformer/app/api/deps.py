from functools import lru_cache
from pathlib import Path

from fastapi import Depends

from mealie_transformer.app.core.config import get_settings
from mealie_transformer.app.schemas.settings import UserSettings
from mealie_transformer.app.services.llm_client import LLMClient
from mealie_transformer.app.services.session_store import JsonFileSessionStore, SessionStore
from mealie_transformer.app.services.settings_service import load_user_settings
from mealie_transformer.app.services.transform_service import TransformPipeline

SESSION_FILENAME = "session.json"


@lru_cache
def _store_for(path: Path) -> JsonFileSessionStore:
    # One instance per file so every request shares its lock.
    return JsonFileSessionStore(path)


def get_session_store() -> SessionStore:
    settings = get_settings()
    return _store_for(settings.data_root / SESSION_FILENAME)


def get_llm_client() -> LLMClient:
    return LLMClient.from_settings(get_settings())


def get_transform_pipeline(llm: LLMClient = Depends(get_llm_client)) -> TransformPipeline:
    return TransformPipeline(llm)


def get_user_settings(store: SessionStore = Depends(get_session_store)) -> UserSettings:
    return load_user_settings(store, get_settings())
