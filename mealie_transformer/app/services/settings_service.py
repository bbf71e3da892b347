"""User settings for mealie-transformer.

Values the user saves are kept in the session store; anything not stored falls
back to the environment configuration and then to the built-in defaults.
"""

import logging
from typing import Any, Dict

from mealie_transformer.app.core.config import Settings
from mealie_transformer.app.schemas.settings import UserSettings, UserSettingsRead, UserSettingsUpdate
from mealie_transformer.app.services.session_store import SessionStore

logger = logging.getLogger(__name__)

SETTINGS_KEY_PREFIX = "settings."

# Setting name -> attribute on the environment Settings used as fallback
SETTINGS_DEFINITIONS: Dict[str, str] = {
    "mealie_url": "mealie_url",
    "mealie_api_token": "mealie_api_token",
    "ui_language": "ui_language",
    "target_language": "target_language",
    "measurement_system": "measurement_system",
}


def _store_key(name: str) -> str:
    return f"{SETTINGS_KEY_PREFIX}{name}"


def load_user_settings(store: SessionStore, env: Settings) -> UserSettings:
    values: Dict[str, Any] = {}
    for name, env_attr in SETTINGS_DEFINITIONS.items():
        value = store.get(_store_key(name))
        if value in (None, ""):
            value = getattr(env, env_attr, None)
        if value not in (None, ""):
            values[name] = value
    return UserSettings(**values)


def update_user_settings(store: SessionStore, env: Settings, update: UserSettingsUpdate) -> UserSettings:
    changes = update.model_dump(exclude_unset=True)
    for name, value in changes.items():
        if name not in SETTINGS_DEFINITIONS:
            continue
        if isinstance(value, str):
            value = value.strip()
        if name == "mealie_url" and value:
            value = value.rstrip("/")
        if value in (None, ""):
            store.delete(_store_key(name))
        else:
            store.set(_store_key(name), value)
    logger.info("Updated user settings: %s", ", ".join(sorted(changes)) or "none")
    return load_user_settings(store, env)


def to_read_model(settings: UserSettings) -> UserSettingsRead:
    return UserSettingsRead(
        mealie_url=settings.mealie_url,
        mealie_api_token_set=bool(settings.mealie_api_token),
        ui_language=settings.ui_language,
        target_language=settings.target_language,
        measurement_system=settings.measurement_system,
    )
