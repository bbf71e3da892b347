import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from pydantic import BaseModel

from mealie_transformer.app.api.deps import get_session_store, get_transform_pipeline, get_user_settings
from mealie_transformer.app.core.errors import InvalidInputError
from mealie_transformer.app.schemas.recipe import (
    ImagesSource,
    MeasurementSystem,
    RecipeSource,
    TransformRequest,
    TransformResult,
)
from mealie_transformer.app.schemas.settings import UserSettings
from mealie_transformer.app.services import review_service
from mealie_transformer.app.services.image_prep import encode_data_uri
from mealie_transformer.app.services.session_store import SessionStore
from mealie_transformer.app.services.transform_service import TransformPipeline, failure_result

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/recipes", tags=["transform"])


class TransformBody(BaseModel):
    source: RecipeSource
    target_language: Optional[str] = None
    measurement_system: Optional[MeasurementSystem] = None


async def _run_and_store(
    pipeline: TransformPipeline, store: SessionStore, request: TransformRequest
) -> TransformResult:
    result = await pipeline.run(request)
    if result.success and result.recipe is not None:
        review_service.save_current(store, result.recipe)
    return result


@router.post("/transform", response_model=TransformResult)
async def transform_recipe(
    payload: TransformBody,
    pipeline: TransformPipeline = Depends(get_transform_pipeline),
    store: SessionStore = Depends(get_session_store),
    user_settings: UserSettings = Depends(get_user_settings),
):
    """Import a recipe; on success it becomes the recipe under review."""
    request = TransformRequest(
        source=payload.source,
        target_language=payload.target_language or user_settings.target_language,
        measurement_system=payload.measurement_system or user_settings.measurement_system,
    )
    return await _run_and_store(pipeline, store, request)


@router.post("/transform/images", response_model=TransformResult)
async def transform_recipe_from_images(
    images: List[UploadFile] = File(...),
    target_language: Optional[str] = Form(None),
    measurement_system: Optional[MeasurementSystem] = Form(None),
    pipeline: TransformPipeline = Depends(get_transform_pipeline),
    store: SessionStore = Depends(get_session_store),
    user_settings: UserSettings = Depends(get_user_settings),
):
    """Multipart variant of the image import; files are treated as pages in upload order."""
    data_uris: List[str] = []
    for file in images:
        raw = await file.read()
        if not raw:
            return failure_result(InvalidInputError("Empty image upload."))
        content_type = file.content_type if (file.content_type or "").startswith("image/") else "image/jpeg"
        data_uris.append(encode_data_uri(raw, content_type))
    logger.info("Received %d uploaded image(s) for transform", len(data_uris))

    request = TransformRequest(
        source=ImagesSource(data_uris=data_uris),
        target_language=target_language or user_settings.target_language,
        measurement_system=measurement_system or user_settings.measurement_system,
    )
    return await _run_and_store(pipeline, store, request)
