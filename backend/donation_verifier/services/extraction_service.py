"""Receipt extraction using a vision-capable generative AI model.

This service turns the URL of an uploaded bank transfer receipt into an
``ExtractedReceiptFields`` instance.  The image is downloaded, its MIME
type sniffed, and the bytes are sent to the configured AI provider
together with the default extraction prompt and a structured-output
schema (see :mod:`donation_verifier.utils.prompts`).

The network collaborators are small capability objects so tests can
substitute deterministic stand-ins:

* ``ImageFetcher`` – download bytes for a receipt URL (``HttpImageFetcher``)
* ``StructuredExtractionClient`` – return the model's JSON text
  (``OpenAIExtractionClient`` or ``GeminiExtractionClient``)

Extraction is a single attempt.  Any failure (download error, invalid
JSON, provider exception) is logged and reported as ``None`` so that the
pipeline declines the donation instead of retrying.

Diagnostic logging can be enabled by setting ``EXTRACTION_DEBUG=1``.
"""

from __future__ import annotations

import base64
import json
import logging
from typing import Any, Dict, NamedTuple, Optional, Protocol

import httpx
from pydantic import ValidationError

from donation_verifier.core.config import settings
from donation_verifier.core.exceptions import ExtractionParseError, ImageFetchError
from donation_verifier.models.enums import AIProvider
from donation_verifier.models.schemas import ExtractedReceiptFields
from donation_verifier.utils.image_processing import prepare_receipt_image
from donation_verifier.utils.prompts import (
    get_default_extraction_prompt,
    get_receipt_gemini_schema,
    get_receipt_json_schema,
)


logger = logging.getLogger(__name__)

DEFAULT_MODELS = {
    AIProvider.OPENAI: "gpt-4o-mini",
    AIProvider.GEMINI: "gemini-2.0-flash",
}

HEALTH_PROMPT = "Hello, respond with just 'OK'"


class FetchedImage(NamedTuple):
    content: bytes
    content_type: Optional[str] = None


class ImageFetcher(Protocol):
    async def fetch(self, url: str) -> FetchedImage: ...


class StructuredExtractionClient(Protocol):
    async def generate(self, image: bytes, mime_type: str, instructions: str, schema: Dict[str, Any]) -> str: ...

    async def ping(self) -> str: ...


# ---------------------------------------------------------------------------
# Image store


class HttpImageFetcher:
    """Download receipt images over HTTP(S)."""

    def __init__(self, client: Optional[httpx.AsyncClient] = None, timeout: Optional[float] = None) -> None:
        self._client = client
        self.timeout = timeout if timeout is not None else settings.IMAGE_FETCH_TIMEOUT_SECONDS

    async def _get(self, client: httpx.AsyncClient, url: str) -> FetchedImage:
        try:
            response = await client.get(url)
        except httpx.HTTPError as exc:
            raise ImageFetchError(f"Failed to fetch image: {exc}") from exc
        if response.status_code < 200 or response.status_code >= 300:
            raise ImageFetchError(f"Failed to fetch image: {response.status_code}")
        return FetchedImage(response.content, response.headers.get("content-type"))

    async def fetch(self, url: str) -> FetchedImage:
        if not url:
            raise ImageFetchError("Donation has no payslip image")
        if self._client is not None:
            return await self._get(self._client, url)
        async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
            return await self._get(client, url)


# ---------------------------------------------------------------------------
# AI providers


class OpenAIExtractionClient:
    """Structured extraction through OpenAI chat completions."""

    def __init__(self, model: Optional[str] = None, client: Any = None) -> None:
        self.model = model or settings.EXTRACTION_MODEL or DEFAULT_MODELS[AIProvider.OPENAI]
        if client is None:
            from openai import AsyncOpenAI

            client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY)
        self._client = client

    async def generate(self, image: bytes, mime_type: str, instructions: str, schema: Dict[str, Any]) -> str:
        b64 = base64.b64encode(image).decode("utf-8")
        response = await self._client.chat.completions.create(
            model=self.model,
            messages=[
                {
                    "role": "user",
                    "content": [
                        {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{b64}"}},
                        {"type": "text", "text": instructions},
                    ],
                }
            ],
            response_format={
                "type": "json_schema",
                "json_schema": {"name": "ExtractedReceiptFields", "schema": schema, "strict": False},
            },
        )
        return response.choices[0].message.content or ""

    async def ping(self) -> str:
        response = await self._client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": HEALTH_PROMPT}],
        )
        return response.choices[0].message.content or ""


class GeminiExtractionClient:
    """Structured extraction through the Google Gen AI SDK."""

    def __init__(self, model: Optional[str] = None, client: Any = None) -> None:
        self.model = model or settings.EXTRACTION_MODEL or DEFAULT_MODELS[AIProvider.GEMINI]
        if client is None:
            from google import genai

            client = genai.Client(api_key=settings.GOOGLE_API_KEY)
        self._client = client

    async def generate(self, image: bytes, mime_type: str, instructions: str, schema: Dict[str, Any]) -> str:
        from google.genai import types

        response = await self._client.aio.models.generate_content(
            model=self.model,
            contents=[types.Part.from_bytes(data=image, mime_type=mime_type), instructions],
            config=types.GenerateContentConfig(
                response_mime_type="application/json",
                response_schema=schema,
            ),
        )
        return response.text or ""

    async def ping(self) -> str:
        response = await self._client.aio.models.generate_content(model=self.model, contents=HEALTH_PROMPT)
        return response.text or ""


# ---------------------------------------------------------------------------
# Extractor


def parse_extraction(raw: str) -> ExtractedReceiptFields:
    """Parse the model's JSON text into receipt fields.

    Raises :class:`ExtractionParseError` if the text is not a JSON
    object or does not fit the receipt model.
    """
    text = (raw or "").strip()
    if text.startswith("```"):
        text = text.strip("`")
        if text.lower().startswith("json"):
            text = text[4:]
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ExtractionParseError(f"AI response is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ExtractionParseError(f"AI response is a {type(data).__name__}, expected an object")
    try:
        return ExtractedReceiptFields.model_validate(data)
    except ValidationError as exc:
        raise ExtractionParseError(f"AI response does not match the receipt schema: {exc}") from exc


class ReceiptExtractor:
    """Service responsible for extracting structured receipt fields."""

    def __init__(
        self,
        fetcher: ImageFetcher,
        client: StructuredExtractionClient,
        schema: Optional[Dict[str, Any]] = None,
        instructions: Optional[str] = None,
    ) -> None:
        self.fetcher = fetcher
        self.client = client
        self.schema = schema if schema is not None else get_receipt_json_schema()
        self.instructions = instructions or get_default_extraction_prompt()
        self.debug = settings.EXTRACTION_DEBUG

    async def extract(self, image_url: str) -> Optional[ExtractedReceiptFields]:
        """Return the extracted fields, or ``None`` if extraction failed."""
        try:
            fetched = await self.fetcher.fetch(image_url)
            image, mime_type = prepare_receipt_image(fetched.content, fetched.content_type)
            if self.debug:
                logger.info("[extraction] url=%s bytes=%d mime=%s", image_url, len(image), mime_type)
            raw = await self.client.generate(image, mime_type, self.instructions, self.schema)
            if self.debug:
                logger.info("[extraction] raw response=%s", raw)
            return parse_extraction(raw)
        except (ImageFetchError, ExtractionParseError) as exc:
            logger.warning("Error extracting payslip data: %s", exc)
            return None
        except Exception:
            logger.exception("Error extracting payslip data")
            return None


def build_extraction_client(provider: Optional[str] = None) -> StructuredExtractionClient:
    """Construct the AI client for ``provider`` (defaults to ``AI_PROVIDER``)."""
    selected = AIProvider((provider or settings.AI_PROVIDER).lower())
    if selected is AIProvider.GEMINI:
        return GeminiExtractionClient()
    return OpenAIExtractionClient()


def build_receipt_extractor(provider: Optional[str] = None) -> ReceiptExtractor:
    """Construct a ``ReceiptExtractor`` wired to HTTP fetching and the configured provider."""
    selected = AIProvider((provider or settings.AI_PROVIDER).lower())
    schema = get_receipt_gemini_schema() if selected is AIProvider.GEMINI else get_receipt_json_schema()
    if settings.EXTRACTION_DEBUG:
        logger.info("[extraction:init] provider=%s", selected.value)
    return ReceiptExtractor(HttpImageFetcher(), build_extraction_client(selected.value), schema=schema)
