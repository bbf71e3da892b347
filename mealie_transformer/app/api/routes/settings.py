from fastapi import APIRouter, Depends

from mealie_transformer.app.api.deps import get_session_store, get_user_settings
from mealie_transformer.app.core.config import get_settings
from mealie_transformer.app.schemas.settings import UserSettings, UserSettingsRead, UserSettingsUpdate
from mealie_transformer.app.services import settings_service
from mealie_transformer.app.services.session_store import SessionStore

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("", response_model=UserSettingsRead)
def read_settings(user_settings: UserSettings = Depends(get_user_settings)):
    return settings_service.to_read_model(user_settings)


@router.put("", response_model=UserSettingsRead)
def update_settings(payload: UserSettingsUpdate, store: SessionStore = Depends(get_session_store)):
    updated = settings_service.update_user_settings(store, get_settings(), payload)
    return settings_service.to_read_model(updated)
