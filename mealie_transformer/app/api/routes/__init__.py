from fastapi import APIRouter

from mealie_transformer.app.api.routes import current_recipe, settings, transform

api_router = APIRouter()
api_router.include_router(transform.router)
api_router.include_router(current_recipe.router)
api_router.include_router(settings.router)
