"""Recipe import pipeline.

Resolves a TransformRequest into one StructuredRecipe, choosing per input
modality which calls to make:

- url: fetch the page, condense its markup, transform
- text: transform the pasted text as-is
- images: transcribe all pages in one vision call, then transform the transcript
- video: hand the link itself to the transform call

Every failure is reported through the returned TransformResult; nothing is
raised to the caller and no partial recipe is ever returned.
"""

import logging
from typing import Awaitable, Callable, Optional

from mealie_transformer.app.core.config import Settings, get_settings
from mealie_transformer.app.core.errors import (
    ExtractionEmptyError,
    ExtractionFailedError,
    InvalidInputError,
    TransformerError,
)
from mealie_transformer.app.schemas.recipe import (
    ImagesSource,
    StructuredRecipe,
    TextSource,
    TransformRequest,
    TransformResult,
    UrlSource,
    VideoSource,
)
from mealie_transformer.app.services import content_prep, image_prep
from mealie_transformer.app.services.content_fetcher import fetch_html, is_absolute_http_url
from mealie_transformer.app.services.llm_client import LLMClient, LLMServiceError

logger = logging.getLogger(__name__)

Fetcher = Callable[[str], Awaitable[str]]


def validate_request(request: TransformRequest, max_images: Optional[int] = None) -> None:
    source = request.source
    if isinstance(source, (UrlSource, VideoSource)):
        if not source.url or not source.url.strip():
            raise InvalidInputError("Source cannot be empty.")
        if not is_absolute_http_url(source.url):
            raise InvalidInputError("Please enter a valid http(s) URL.")
    elif isinstance(source, TextSource):
        if not source.text or not source.text.strip():
            raise InvalidInputError("Source cannot be empty.")
    elif isinstance(source, ImagesSource):
        if not source.data_uris:
            raise InvalidInputError("Please add at least one image.")
        if any(not uri or not uri.strip() for uri in source.data_uris):
            raise InvalidInputError("Image data cannot be empty.")
        if max_images and len(source.data_uris) > max_images:
            raise InvalidInputError(f"Too many images (max {max_images}).")
    if not request.target_language or not request.target_language.strip():
        raise InvalidInputError("Target language cannot be empty.")


def failure_result(exc: TransformerError) -> TransformResult:
    return TransformResult(
        success=False,
        error_code=exc.error_code,
        error_message=exc.message,
        status_code=getattr(exc, "status_code", None),
    )


class TransformPipeline:
    def __init__(
        self,
        llm: LLMClient,
        fetcher: Fetcher = fetch_html,
        settings: Optional[Settings] = None,
    ):
        self.llm = llm
        self.fetcher = fetcher
        self.settings = settings or get_settings()

    async def run(self, request: TransformRequest) -> TransformResult:
        kind = request.source.kind
        logger.info(
            "Transform started: kind=%s, target_language=%s, measurement_system=%s",
            kind,
            request.target_language,
            request.measurement_system,
        )
        try:
            recipe = await self._run(request)
        except TransformerError as exc:
            logger.warning("Transform failed: kind=%s, error_code=%s, message=%s", kind, exc.error_code, exc.message)
            return failure_result(exc)
        except Exception:  # noqa: BLE001
            logger.exception("Unexpected error during transform: kind=%s", kind)
            return failure_result(ExtractionFailedError())

        logger.info(
            "Transform succeeded: kind=%s, ingredients=%d, instructions=%d",
            kind,
            len(recipe.ingredients),
            len(recipe.instructions),
        )
        return TransformResult(success=True, recipe=recipe)

    async def _run(self, request: TransformRequest) -> StructuredRecipe:
        validate_request(request, self.settings.recipe_image_max_count)
        source = request.source
        markup: Optional[str] = None

        if isinstance(source, UrlSource):
            url = source.url.strip()
            markup = await self.fetcher(url)
            content = content_prep.condense_markup(markup, self.settings.llm_content_max_chars) or markup
        elif isinstance(source, TextSource):
            content = source.text
        elif isinstance(source, ImagesSource):
            images = image_prep.prepare_data_uris(source.data_uris, self.settings.recipe_image_max_bytes)
            content = await self._transcribe(images)
        else:
            content = source.url.strip()

        try:
            recipe = await self.llm.transform(content, request.target_language.strip(), request.measurement_system)
        except (LLMServiceError, ValueError) as exc:
            logger.warning("Transform call failed: %s", exc)
            raise ExtractionFailedError() from exc
        if not recipe.has_content():
            raise ExtractionFailedError()

        updates = {"source": None}
        if isinstance(source, (UrlSource, VideoSource)):
            updates["source"] = source.url.strip()
        if markup is not None and not recipe.image:
            try:
                updates["image"] = content_prep.find_page_image(markup, source.url.strip())
            except Exception as exc:  # noqa: BLE001
                logger.warning("Page image lookup failed for %s: %s", source.url, exc)
        return recipe.model_copy(update=updates)

    async def _transcribe(self, images) -> str:
        try:
            transcript = await self.llm.extract_text_from_images(images)
        except (LLMServiceError, ValueError) as exc:
            logger.warning("Image transcription failed: %s", exc)
            raise ExtractionFailedError() from exc
        if not transcript or not transcript.strip():
            raise ExtractionEmptyError()
        return transcript
