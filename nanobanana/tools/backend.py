"""Gemini invocation adapter: request conversion and stream aggregation."""
import base64
import logging
from dataclasses import dataclass, field
from functools import reduce
from typing import Any, Iterable, List, Optional, Protocol, Sequence

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from ..config import Settings
from ..errors import BackendError
from ..session.memory import InlineImage, RequestPart, Turn

logger = logging.getLogger(__name__)

_SAFETY_CATEGORIES = (
    types.HarmCategory.HARM_CATEGORY_HARASSMENT,
    types.HarmCategory.HARM_CATEGORY_HATE_SPEECH,
    types.HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT,
    types.HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT,
)


@dataclass(frozen=True)
class StreamChunk:
    """The useful content of one streamed response, in part order."""

    texts: List[str] = field(default_factory=list)
    images: List[InlineImage] = field(default_factory=list)
    block_reason: Optional[str] = None


@dataclass(frozen=True)
class BackendResult:
    """Aggregated outcome of one image call."""

    text: str = ""
    image: Optional[InlineImage] = None
    error: Optional[str] = None

    @property
    def produced_image(self) -> bool:
        return self.image is not None


def fold_chunk(aggregate: BackendResult, chunk: StreamChunk) -> BackendResult:
    """Fold one chunk into the running result.

    Text fragments are concatenated in arrival order. Only the last image
    survives; earlier image-bearing chunks are discarded.
    """
    image = chunk.images[-1] if chunk.images else aggregate.image
    return BackendResult(
        text=aggregate.text + "".join(chunk.texts),
        image=image,
        error=chunk.block_reason or aggregate.error,
    )


def aggregate_stream(chunks: Iterable[StreamChunk]) -> BackendResult:
    return reduce(fold_chunk, chunks, BackendResult())


def _decode_inline(data: Any) -> bytes:
    if isinstance(data, str):
        return base64.b64decode(data)
    return bytes(data)


def chunk_from_response(response: Any) -> StreamChunk:
    """Pull text, images and any block reason out of a response chunk.

    Chunks with no candidate content yield an empty StreamChunk.
    """
    block_reason = None
    feedback = getattr(response, "prompt_feedback", None)
    if feedback is not None and getattr(feedback, "block_reason", None):
        reason = feedback.block_reason
        block_reason = f"Prompt blocked: {getattr(reason, 'value', reason)}"

    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return StreamChunk(block_reason=block_reason)
    content = getattr(candidates[0], "content", None)
    parts = getattr(content, "parts", None) or []

    texts: List[str] = []
    images: List[InlineImage] = []
    for part in parts:
        inline_data = getattr(part, "inline_data", None)
        if inline_data is not None and inline_data.data:
            images.append(
                InlineImage(
                    data=_decode_inline(inline_data.data),
                    mime_type=inline_data.mime_type or "image/png",
                )
            )
        elif getattr(part, "text", None) and not getattr(part, "thought", False):
            texts.append(part.text)
    return StreamChunk(texts=texts, images=images, block_reason=block_reason)


def to_genai_part(part: RequestPart) -> types.Part:
    if part.image is not None:
        return types.Part(
            inline_data=types.Blob(data=part.image.data, mime_type=part.image.mime_type)
        )
    return types.Part(text=part.text or "")


def to_genai_content(turn: Turn) -> types.Content:
    return types.Content(role=turn.role, parts=[to_genai_part(p) for p in turn.parts])


def _describe_api_error(exc: genai_errors.APIError) -> str:
    status = f" {exc.status}" if getattr(exc, "status", None) else ""
    return f"Gemini API error {exc.code}{status}: {exc.message or exc}"


class ImageBackend(Protocol):
    async def generate_image(
        self, parts: Sequence[RequestPart], aspect_ratio: str, enable_search: bool = False
    ) -> BackendResult:
        ...

    async def chat(
        self,
        transcript: Sequence[Turn],
        turn: Turn,
        system_instruction: Optional[str] = None,
    ) -> str:
        ...


class GeminiBackend:
    """Thin wrapper around ``google.genai.Client`` async calls."""

    def __init__(self, settings: Settings, client: Optional[genai.Client] = None):
        self.settings = settings
        self.client = client or genai.Client(api_key=settings.api_key)

    def image_config(self, aspect_ratio: str, enable_search: bool = False) -> types.GenerateContentConfig:
        image_config = {"aspect_ratio": aspect_ratio}
        if self.settings.image_size:
            image_config["image_size"] = self.settings.image_size

        config_kwargs: dict = {
            "response_modalities": ["IMAGE", "TEXT"],
            "image_config": types.ImageConfig(**image_config),
            "safety_settings": [
                types.SafetySetting(category=category, threshold=types.HarmBlockThreshold.BLOCK_NONE)
                for category in _SAFETY_CATEGORIES
            ],
        }
        if enable_search:
            config_kwargs["tools"] = [types.Tool(google_search=types.GoogleSearch())]
        return types.GenerateContentConfig(**config_kwargs)

    async def generate_image(
        self, parts: Sequence[RequestPart], aspect_ratio: str, enable_search: bool = False
    ) -> BackendResult:
        """Stream one image request and aggregate every chunk.

        Raises:
            BackendError: transport failure or an unparseable response.
        """
        contents = [types.Content(role="user", parts=[to_genai_part(p) for p in parts])]
        config = self.image_config(aspect_ratio, enable_search)
        logger.info(
            "[generate] model=%s parts=%d ratio=%s search=%s",
            self.settings.image_model, len(parts), aspect_ratio, enable_search,
        )

        chunks: List[StreamChunk] = []
        try:
            stream = await self.client.aio.models.generate_content_stream(
                model=self.settings.image_model,
                contents=contents,
                config=config,
            )
            async for response in stream:
                chunks.append(chunk_from_response(response))
        except genai_errors.APIError as e:
            raise BackendError(_describe_api_error(e)) from e
        except httpx.HTTPError as e:
            raise BackendError(f"Gemini transport error: {e}") from e
        except ValueError as e:
            raise BackendError(f"Malformed response from Gemini: {e}") from e

        result = aggregate_stream(chunks)
        logger.info(
            "[generate] %d chunks, image=%s, text=%d chars",
            len(chunks), result.produced_image, len(result.text),
        )
        return result

    async def chat(
        self,
        transcript: Sequence[Turn],
        turn: Turn,
        system_instruction: Optional[str] = None,
    ) -> str:
        contents = [to_genai_content(t) for t in [*transcript, turn]]
        config = None
        if system_instruction:
            config = types.GenerateContentConfig(system_instruction=system_instruction)

        try:
            response = await self.client.aio.models.generate_content(
                model=self.settings.chat_model,
                contents=contents,
                config=config,
            )
        except genai_errors.APIError as e:
            raise BackendError(_describe_api_error(e)) from e
        except httpx.HTTPError as e:
            raise BackendError(f"Gemini transport error: {e}") from e
        except ValueError as e:
            raise BackendError(f"Malformed response from Gemini: {e}") from e

        text = "".join(chunk_from_response(response).texts)
        if not text:
            raise BackendError("No response from model")
        return text
