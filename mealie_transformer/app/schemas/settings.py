from typing import Optional

from pydantic import BaseModel

from mealie_transformer.app.schemas.recipe import MeasurementSystem


class UserSettings(BaseModel):
    mealie_url: Optional[str] = None
    mealie_api_token: Optional[str] = None
    ui_language: str = "en"
    target_language: str = "fr"
    measurement_system: MeasurementSystem = "metric"


class UserSettingsRead(BaseModel):
    mealie_url: Optional[str] = None
    mealie_api_token_set: bool = False
    ui_language: str
    target_language: str
    measurement_system: MeasurementSystem


class UserSettingsUpdate(BaseModel):
    """Partial update; an explicit ``null`` clears the stored value."""

    mealie_url: Optional[str] = None
    mealie_api_token: Optional[str] = None
    ui_language: Optional[str] = None
    target_language: Optional[str] = None
    measurement_system: Optional[MeasurementSystem] = None
