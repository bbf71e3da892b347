from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator

MeasurementSystem = Literal["metric", "us"]


def _flatten_items(value):
    """Accept plain strings or ``{"value": ...}`` form rows; drop blanks, keep order."""
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    items: List[str] = []
    for item in value:
        if isinstance(item, dict):
            item = item.get("value") or item.get("text") or " ".join(
                str(item[key]) for key in ("quantity", "unit", "name") if item.get(key)
            )
        if item is None:
            continue
        text = str(item).strip()
        if text:
            items.append(text)
    return items


class StructuredRecipe(BaseModel):
    title: str = ""
    description: Optional[str] = None
    servings: Optional[str] = None
    prep_time: Optional[str] = None
    cooking_time: Optional[str] = None
    ingredients: List[str] = Field(default_factory=list)
    instructions: List[str] = Field(default_factory=list)
    source: Optional[str] = None
    image: Optional[str] = None

    @field_validator("ingredients", "instructions", mode="before")
    @classmethod
    def _coerce_items(cls, value):
        return _flatten_items(value)

    @field_validator("servings", "prep_time", "cooking_time", mode="before")
    @classmethod
    def _stringify(cls, value):
        if value is None or isinstance(value, str):
            return value
        return str(value)

    def has_content(self) -> bool:
        return bool(self.ingredients or self.instructions)


class UrlSource(BaseModel):
    kind: Literal["url"] = "url"
    url: str


class TextSource(BaseModel):
    kind: Literal["text"] = "text"
    text: str


class ImagesSource(BaseModel):
    kind: Literal["images"] = "images"
    data_uris: List[str] = Field(default_factory=list)


class VideoSource(BaseModel):
    kind: Literal["video"] = "video"
    url: str


RecipeSource = Annotated[
    Union[UrlSource, TextSource, ImagesSource, VideoSource],
    Field(discriminator="kind"),
]


class TransformRequest(BaseModel):
    source: RecipeSource
    target_language: str
    measurement_system: MeasurementSystem


class TransformResult(BaseModel):
    success: bool
    recipe: Optional[StructuredRecipe] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    status_code: Optional[int] = None


class RecipeItem(BaseModel):
    text: str


class PublishResult(BaseModel):
    slug: Optional[str] = None
