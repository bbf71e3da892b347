import json
import logging
import re
from typing import Any, Dict, List, Optional

import httpx

from mealie_transformer.app.core.config import Settings, get_settings
from mealie_transformer.app.schemas.recipe import MeasurementSystem, StructuredRecipe

logger = logging.getLogger(__name__)

RECIPE_SCHEMA_HINT = (
    '{"title": string, "description": string, "servings": string, "prepTime": string, '
    '"cookingTime": string, "ingredients": [string], "instructions": [string], "image": string}'
)

MEASUREMENT_SYSTEM_LABELS: Dict[str, str] = {
    "metric": "metric (grams, kilograms, millilitres, litres, degrees Celsius)",
    "us": "US customary (cups, tablespoons, teaspoons, ounces, pounds, degrees Fahrenheit)",
}


class LLMServiceError(Exception):
    """Raised when the model endpoint fails or returns an unusable answer."""


# Remove ASCII control chars that frequently break json.loads (except \n, \r, \t)
def _strip_invalid_control_chars(s: str) -> str:
    if not isinstance(s, str):
        return str(s)
    return re.sub(r"[\x00-\x08\x0B\x0C\x0E-\x1F]", "", s)


def _strip_code_fence(text: str) -> str:
    txt = text.strip()
    if txt.startswith("```"):
        txt = re.sub(r"^```[a-zA-Z0-9_-]*\s*", "", txt, count=1)
        txt = re.sub(r"\s*```$", "", txt, count=1).strip()
    return txt


def parse_json_object(raw: str) -> Dict[str, Any]:
    """Parse model output into a JSON object, recovering from fences and surrounding prose."""
    cleaned = _strip_code_fence(_strip_invalid_control_chars(raw))
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        start = cleaned.find("{")
        end = cleaned.rfind("}")
        if start == -1 or end <= start:
            raise ValueError("LLM response was not valid JSON")
        try:
            data = json.loads(cleaned[start : end + 1])
        except json.JSONDecodeError as exc:
            raise ValueError("LLM response was not valid JSON") from exc
    if not isinstance(data, dict):
        raise ValueError("LLM response is not a JSON object")
    return data


def _first(data: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = data.get(key)
        if value not in (None, "", []):
            return value
    return None


def _text_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (list, dict)):
        value = value[0] if isinstance(value, list) and value else None
        if value is None or isinstance(value, dict):
            return None
    text = str(value).strip()
    return text or None


def coerce_structured_recipe(obj: Any) -> StructuredRecipe:
    """
    Accepts the JSON shapes models tend to produce and coerces into StructuredRecipe.
    Besides the requested schema we also accept {"recipe": {...}} envelopes and
    schema.org-like keys: name, recipeYield, cookTime/totalTime, steps/directions.
    """
    data = parse_json_object(obj) if isinstance(obj, str) else obj
    if isinstance(data, dict) and isinstance(data.get("recipe"), dict):
        data = data["recipe"]
    if not isinstance(data, dict):
        raise ValueError("LLM response is not a JSON object")

    error_val = data.get("error")
    if isinstance(error_val, str) and error_val.strip():
        raise ValueError(f"LLM reported no recipe: {error_val.strip()}")

    steps_in = _first(data, "instructions", "steps", "directions", "recipeInstructions") or []
    if isinstance(steps_in, list):
        steps_in = [
            (st.get("text") or st.get("value") or st.get("description") or "") if isinstance(st, dict) else st
            for st in steps_in
        ]

    return StructuredRecipe(
        title=_text_or_none(_first(data, "title", "name")) or "",
        description=_text_or_none(data.get("description")),
        servings=_text_or_none(_first(data, "servings", "recipeYield", "yield")),
        prep_time=_text_or_none(_first(data, "prepTime", "prep_time")),
        cooking_time=_text_or_none(_first(data, "cookingTime", "cooking_time", "cookTime", "totalTime")),
        ingredients=_first(data, "ingredients", "recipeIngredient") or [],
        instructions=steps_in,
        image=_text_or_none(data.get("image")),
    )


class LLMClient:
    """Client for an OpenAI-compatible chat completions endpoint."""

    def __init__(
        self,
        base_url: Optional[str],
        api_key: Optional[str] = None,
        model_name: str = "full",
        vision_model_name: str = "vision",
        timeout_seconds: float = 90.0,
        max_tokens: int = 4000,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or "").rstrip("/")
        self.api_key = api_key
        self.model_name = model_name
        self.vision_model_name = vision_model_name
        self.timeout_seconds = timeout_seconds
        self.max_tokens = max_tokens
        self.transport = transport

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "LLMClient":
        settings = settings or get_settings()
        return cls(
            base_url=settings.llm_base_url,
            api_key=settings.llm_api_key,
            model_name=settings.llm_model_name,
            vision_model_name=settings.llm_vision_model_name,
            timeout_seconds=settings.llm_timeout_seconds,
            max_tokens=settings.llm_max_tokens,
        )

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _chat_json(self, messages: List[Dict[str, Any]], model: Optional[str] = None) -> Dict[str, Any]:
        if not self.base_url:
            raise LLMServiceError("LLM_BASE_URL is not configured")

        payload = {
            "model": model or self.model_name,
            "temperature": 0.0,
            "response_format": {"type": "json_object"},
            "messages": messages,
            "max_tokens": self.max_tokens,
            "stream": False,
        }
        timeout = httpx.Timeout(self.timeout_seconds, connect=10.0)
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self.transport) as client:
                resp = await client.post(
                    f"{self.base_url}/v1/chat/completions",
                    json=payload,
                    headers=self._headers(),
                )
        except httpx.HTTPError as exc:
            logger.warning("LLM request failed: %s", exc)
            raise LLMServiceError(f"LLM request failed: {exc}") from exc

        if resp.status_code >= 400:
            logger.warning("LLM returned status %s: %s", resp.status_code, resp.text[:500])
            raise LLMServiceError(f"LLM request failed with status {resp.status_code}")

        try:
            data = resp.json()
        except ValueError as exc:
            raise LLMServiceError("LLM response body was not JSON") from exc

        if isinstance(data, dict) and "error" in data:
            error_info = data["error"] if isinstance(data["error"], dict) else {"message": str(data["error"])}
            error_type = error_info.get("type", "unknown_error")
            error_message = error_info.get("message", "Unknown error")
            logger.error("LLM provider returned error: type=%s, message=%s", error_type, error_message[:500])
            raise LLMServiceError(f"LLM provider error ({error_type}): {error_message}")

        content = None
        if isinstance(data, dict) and data.get("choices"):
            choice = data["choices"][0]
            if isinstance(choice, dict):
                content = (choice.get("message") or {}).get("content")
        if not content or not isinstance(content, str):
            raise LLMServiceError("LLM response missing assistant content")

        logger.debug("LLM raw content (truncated): %s", content[:1000])
        try:
            return parse_json_object(content)
        except ValueError as exc:
            logger.warning("LLM response parse failed; raw content (truncated): %s", content[:1000])
            raise LLMServiceError(str(exc)) from exc

    async def extract_text_from_images(self, data_uris: List[str]) -> str:
        """Transcribe the recipe shown across the images, read as consecutive pages."""
        parts: List[Dict[str, Any]] = [
            {
                "type": "text",
                "text": (
                    f"These {len(data_uris)} image(s) are consecutive pages of one recipe, in order. "
                    "Extract all the text of the recipe across every page and combine it into a single "
                    "transcript. Only return the text of the recipe. "
                    'Respond with JSON: {"recipeText": string}. Use an empty string if there is no recipe.'
                ),
            }
        ]
        for uri in data_uris:
            parts.append({"type": "image_url", "image_url": {"url": uri}})

        data = await self._chat_json(
            [
                {"role": "system", "content": "You are an expert at extracting text from images of recipes."},
                {"role": "user", "content": parts},
            ],
            model=self.vision_model_name,
        )
        text = data.get("recipeText") or data.get("recipe_text") or data.get("text") or ""
        text = text.strip() if isinstance(text, str) else ""
        logger.info("Image transcript: images=%d, chars=%d", len(data_uris), len(text))
        return text

    async def transform(
        self, content: str, target_language: str, measurement_system: MeasurementSystem
    ) -> StructuredRecipe:
        """Extract, translate and convert units in one call."""
        system_label = MEASUREMENT_SYSTEM_LABELS.get(measurement_system, measurement_system)
        system_prompt = (
            "You are an expert recipe processor. Perform three actions on the recipe source in a single step:\n"
            "1. Extract details: title, description, ingredients, instructions, prep time, cooking time, servings.\n"
            f"2. Translate all extracted text into natural-sounding {target_language}.\n"
            f"3. Convert all measurements into the {system_label} system. If unsure of a conversion, keep the original.\n\n"
            "Rules:\n"
            "- Use only information present in the source; never invent ingredients, steps, times or servings.\n"
            "- Omit any field the source does not provide.\n"
            "- Keep ingredients and instructions in the order the source gives them, one entry per line/step.\n"
            "- The source may be page markup, plain text, an OCR transcript or a link to a cooking video; "
            "for a video link, describe the recipe shown in that video.\n"
            '- If the source contains no recipe, return {"error": "no_recipe"}.\n'
            f"Return ONLY JSON matching: {RECIPE_SCHEMA_HINT}"
        )
        data = await self._chat_json(
            [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": f"Recipe source:\n{content}"},
            ]
        )
        return coerce_structured_recipe(data)

    async def extract_recipe(self, content: str) -> StructuredRecipe:
        """Extraction only, with no translation or unit conversion."""
        system_prompt = (
            "You are a recipe data extraction expert. Extract the recipe title, description, "
            "ingredients (list of strings), instructions (list of strings), cooking time, prep time "
            "and servings from the source, which may be markup or plain text. Ignore headers, footers "
            "and ads. Keep the wording and order of the source. Omit any field that is not available.\n"
            f"Return ONLY JSON matching: {RECIPE_SCHEMA_HINT}"
        )
        data = await self._chat_json(
            [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": f"Source:\n{content}"},
            ]
        )
        return coerce_structured_recipe(data)

    async def translate_text(self, recipe_text: str, target_language: str) -> str:
        data = await self._chat_json(
            [
                {
                    "role": "system",
                    "content": (
                        f"Translate the recipe to {target_language}. Keep the section labels and line structure. "
                        'Respond with JSON: {"translatedRecipe": string}.'
                    ),
                },
                {"role": "user", "content": f"Recipe:\n{recipe_text}"},
            ]
        )
        translated = data.get("translatedRecipe")
        if not isinstance(translated, str) or not translated.strip():
            raise LLMServiceError("LLM translation returned no text")
        return translated.strip()

    async def convert_units_text(self, recipe_text: str, measurement_system: MeasurementSystem) -> str:
        system_label = MEASUREMENT_SYSTEM_LABELS.get(measurement_system, measurement_system)
        data = await self._chat_json(
            [
                {
                    "role": "system",
                    "content": (
                        "You are a recipe assistant that converts units in a recipe to the user's preferred "
                        f"measurement system: {system_label}.\n"
                        "Do not modify any other aspect of the recipe. If the recipe is already in that system, "
                        "return it as is. If you are unsure of a conversion, leave the original measurement. "
                        "Pay attention to fractions and convert them properly.\n"
                        'Respond with JSON: {"convertedRecipeText": string}.'
                    ),
                },
                {"role": "user", "content": f"Recipe:\n{recipe_text}"},
            ]
        )
        converted = data.get("convertedRecipeText")
        if not isinstance(converted, str) or not converted.strip():
            raise LLMServiceError("LLM unit conversion returned no text")
        return converted.strip()


def recipe_to_text(recipe: StructuredRecipe) -> str:
    """Render a recipe as labelled plain text for the text-to-text model calls."""
    lines = [f"Title: {recipe.title}"]
    if recipe.description:
        lines.append(f"Description: {recipe.description}")
    if recipe.prep_time:
        lines.append(f"Prep Time: {recipe.prep_time}")
    if recipe.cooking_time:
        lines.append(f"Cook Time: {recipe.cooking_time}")
    if recipe.servings:
        lines.append(f"Servings: {recipe.servings}")
    if recipe.ingredients:
        lines.append("Ingredients:")
        lines.extend(recipe.ingredients)
    if recipe.instructions:
        lines.append("Instructions:")
        lines.extend(recipe.instructions)
    return "\n".join(lines)
