import logging
import uuid

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status

from mealie_transformer.app.api.routes import api_router
from mealie_transformer.app.core.config import get_settings
from mealie_transformer.app.core.errors import TransformerError

logger = logging.getLogger(__name__)


async def validation_exception_handler(request, exc: RequestValidationError):
    request_id = str(uuid.uuid4())
    details = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", []) if part is not None)
        msg = err.get("msg", "Invalid value")
        details.append({"field": loc or None, "message": msg})
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "validation_error",
            "message": "Invalid request payload.",
            "details": details,
            "request_id": request_id,
        },
    )


async def transformer_exception_handler(request, exc: TransformerError):
    if exc.http_status >= 500:
        logger.warning("Request failed upstream: error_code=%s, message=%s", exc.error_code, exc.message)
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="Mealie Transformer", version="0.1.0")
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(TransformerError, transformer_exception_handler)
    app.include_router(api_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.on_event("startup")
    async def startup_event() -> None:
        if settings.llm_base_url:
            logger.info("Using LLM endpoint %s (model=%s)", settings.llm_base_url, settings.llm_model_name)
        else:
            logger.warning("LLM_BASE_URL is not set; recipe transforms will fail until it is configured")

    return app


app = create_app()
