import base64
import os
import tempfile
from io import BytesIO

os.environ.setdefault("DATA_ROOT", tempfile.mkdtemp(prefix="mealie-transformer-tests-"))

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from mealie_transformer.app.api.deps import get_llm_client, get_session_store, get_transform_pipeline
from mealie_transformer.app.core.errors import SourceUnreachableError
from mealie_transformer.app.main import create_app
from mealie_transformer.app.schemas.recipe import StructuredRecipe
from mealie_transformer.app.services.session_store import JsonFileSessionStore
from mealie_transformer.app.services.transform_service import TransformPipeline


def make_recipe(**overrides) -> StructuredRecipe:
    data = {
        "title": "Tomato Soup",
        "description": "A simple soup",
        "servings": "4",
        "prep_time": "10 min",
        "cooking_time": "30 min",
        "ingredients": ["500 g tomatoes", "1 onion", "500 ml stock"],
        "instructions": ["Chop the onion.", "Simmer everything.", "Blend until smooth."],
    }
    data.update(overrides)
    return StructuredRecipe(**data)


def make_data_uri(color=(255, 0, 0), size=(32, 32), fmt="PNG") -> str:
    out = BytesIO()
    Image.new("RGB", size, color).save(out, format=fmt)
    mime = "image/png" if fmt == "PNG" else "image/jpeg"
    return f"data:{mime};base64,{base64.b64encode(out.getvalue()).decode('ascii')}"


class FakeLLM:
    """Records every call and answers with the configured values."""

    def __init__(self):
        self.calls = []
        self.recipe = make_recipe()
        self.transcript = "Tomato Soup\nIngredients: tomatoes, onion\nSteps: simmer, blend"
        self.rewritten_text = "Titre: Soupe"
        self.extracted = make_recipe(title="Soupe de tomates", ingredients=["500 g de tomates"], instructions=["Mixer."])
        self.error = None

    def _maybe_fail(self):
        if self.error is not None:
            raise self.error

    async def transform(self, content, target_language, measurement_system):
        self.calls.append(("transform", content, target_language, measurement_system))
        self._maybe_fail()
        return self.recipe

    async def extract_text_from_images(self, data_uris):
        self.calls.append(("images", list(data_uris)))
        self._maybe_fail()
        return self.transcript

    async def extract_recipe(self, content):
        self.calls.append(("extract", content))
        self._maybe_fail()
        return self.extracted

    async def translate_text(self, recipe_text, target_language):
        self.calls.append(("translate", recipe_text, target_language))
        self._maybe_fail()
        return self.rewritten_text

    async def convert_units_text(self, recipe_text, measurement_system):
        self.calls.append(("convert", recipe_text, measurement_system))
        self._maybe_fail()
        return self.rewritten_text


class FakeFetcher:
    def __init__(self, pages=None):
        self.pages = pages or {}
        self.calls = []

    async def __call__(self, url):
        self.calls.append(url)
        page = self.pages.get(url)
        if isinstance(page, Exception):
            raise page
        if page is None:
            raise SourceUnreachableError("Not Found", status_code=404)
        return page


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def fake_fetcher():
    return FakeFetcher()


@pytest.fixture
def pipeline(fake_llm, fake_fetcher):
    return TransformPipeline(fake_llm, fetcher=fake_fetcher)


@pytest.fixture
def store(tmp_path):
    return JsonFileSessionStore(tmp_path / "session.json")


@pytest.fixture
def app(store, fake_llm, pipeline):
    app = create_app()
    app.dependency_overrides[get_session_store] = lambda: store
    app.dependency_overrides[get_llm_client] = lambda: fake_llm
    app.dependency_overrides[get_transform_pipeline] = lambda: pipeline
    return app


@pytest.fixture
def client(app):
    return TestClient(app)
