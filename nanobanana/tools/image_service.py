"""Tool operations over session state, the resolver and the Gemini backend.

Each operation returns a ToolResult for success or a soft failure and raises
an ImageSessionError for hard failures. ``call_tool`` is the boundary that
turns every failure into a failed ToolResult.
"""
import json
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple, Type

from pydantic import BaseModel, ValidationError

from ..errors import ImageSessionError, InvalidArgument, UnknownOperation
from ..session.memory import MediaRecord, RequestPart, SessionContext, Turn
from ..session.registry import SessionRegistry, resolve_ratio
from .backend import BackendResult, ImageBackend
from .output import ImageWriter, ensure_png
from .references import ReferenceResolver
from .request_builder import AssembledRequest, RequestAssembler
from .schemas import (
    ChatRequest,
    EditImageRequest,
    GenerateImageRequest,
    SessionRequest,
    SetAspectRatioRequest,
    ToolResult,
)

logger = logging.getLogger(__name__)

NO_IMAGE_PRODUCED = "NoImageProduced"


def _failure(message: str, error_type: str, warnings: Optional[List[str]] = None) -> ToolResult:
    return ToolResult(success=False, message=message, error_type=error_type, warnings=warnings or [])


def _model_response(result: BackendResult) -> str:
    return f"\nModel response: {result.text}" if result.text else ""


class ImageSessionService:
    """The six session tools, wired to explicit collaborators."""

    def __init__(
        self,
        registry: SessionRegistry,
        backend: ImageBackend,
        resolver: ReferenceResolver,
        writer: ImageWriter,
    ):
        self.registry = registry
        self.backend = backend
        self.resolver = resolver
        self.writer = writer
        self.assembler = RequestAssembler(resolver)
        # name -> (request model, handler, error prefix)
        self._tools: Dict[str, Tuple[Type[BaseModel], Callable[[Any], Awaitable[ToolResult]], str]] = {
            "set_aspect_ratio": (SetAspectRatioRequest, self.set_aspect_ratio, "Error setting aspect ratio"),
            "gemini_chat": (ChatRequest, self.chat, "Error in chat"),
            "gemini_generate_image": (GenerateImageRequest, self.generate_image, "Error generating image"),
            "gemini_edit_image": (EditImageRequest, self.edit_image, "Error editing image"),
            "get_image_history": (SessionRequest, self.get_image_history, "Error reading image history"),
            "clear_conversation": (SessionRequest, self.clear_conversation, "Error clearing conversation"),
        }

    @property
    def tool_names(self) -> List[str]:
        return list(self._tools)

    async def call_tool(self, name: str, arguments: Optional[Mapping[str, Any]] = None) -> ToolResult:
        """Validate arguments, run the named tool and never raise."""
        entry = self._tools.get(name)
        if entry is None:
            e = UnknownOperation(f"Unknown tool: {name}")
            return _failure(f"Error: {e}", type(e).__name__)

        request_model, handler, error_prefix = entry
        try:
            try:
                request = request_model.model_validate(dict(arguments or {}))
            except ValidationError as e:
                raise InvalidArgument(str(e)) from e
            return await handler(request)
        except ImageSessionError as e:
            logger.info("[%s] %s: %s", name, type(e).__name__, e)
            return _failure(f"{error_prefix}: {e}", type(e).__name__)
        except Exception as e:
            logger.exception("[%s] Unexpected failure", name)
            return _failure(f"{error_prefix}: {e}", type(e).__name__)

    async def set_aspect_ratio(self, request: SetAspectRatioRequest) -> ToolResult:
        async with self.registry.lock(request.conversation_id):
            self.registry.set_default_ratio(request.conversation_id, request.aspect_ratio)
        return ToolResult(
            success=True,
            message=(
                f"Aspect ratio set to {request.aspect_ratio} for session: "
                f"{request.conversation_id}"
            ),
        )

    async def chat(self, request: ChatRequest) -> ToolResult:
        async with self.registry.session(request.conversation_id) as context:
            assembled = self.assembler.chat(context, request.message, request.images)
            turn = Turn(role="user", parts=assembled.parts)
            logger.info(
                "[chat] session=%s turns=%d images=%d",
                request.conversation_id, len(context.transcript), len(assembled.parts) - 1,
            )
            text = await self.backend.chat(context.transcript, turn, request.system_prompt)

            # Only a completed exchange enters the transcript
            context.add_turn(turn)
            context.add_turn(Turn(role="model", parts=[RequestPart.from_text(text)]))

        return ToolResult(success=True, message=text, warnings=assembled.warnings)

    async def generate_image(self, request: GenerateImageRequest) -> ToolResult:
        async with self.registry.session(request.conversation_id) as context:
            ratio = resolve_ratio(request.aspect_ratio, context.default_ratio)
            assembled = self.assembler.generate(
                context,
                request.prompt,
                reference_images=request.reference_images,
                use_image_history=request.use_image_history,
            )
            result = await self.backend.generate_image(
                assembled.parts, ratio, enable_search=request.enable_google_search
            )
            if not result.produced_image:
                return _failure(
                    f'Image generation failed.\nPrompt: "{request.prompt}"\n'
                    + (result.error or result.text or "No response from model"),
                    NO_IMAGE_PRODUCED,
                    assembled.warnings,
                )

            record = self._store(context, result, request.output_path, "generated", request.prompt)

        return ToolResult(
            success=True,
            message=(
                "✓ Image generated successfully!\n"
                f'Prompt: "{request.prompt}"\n'
                f"Aspect ratio: {ratio}\n"
                + self._saved_lines(record, context)
                + _model_response(result)
            ),
            warnings=assembled.warnings,
            file_path=record.file_path,
        )

    async def edit_image(self, request: EditImageRequest) -> ToolResult:
        async with self.registry.session(request.conversation_id) as context:
            ratio = resolve_ratio(request.aspect_ratio, context.default_ratio)
            assembled = self.assembler.edit(
                context,
                request.image_path,
                request.edit_prompt,
                reference_images=request.reference_images,
            )
            result = await self.backend.generate_image(
                assembled.parts, ratio, enable_search=request.enable_google_search
            )
            if not result.produced_image:
                return _failure(
                    "Image editing failed.\n"
                    f"Original: {request.image_path}\n"
                    f'Edit request: "{request.edit_prompt}"\n'
                    + (result.error or result.text or "No response from model"),
                    NO_IMAGE_PRODUCED,
                    assembled.warnings,
                )

            record = self._store(
                context,
                result,
                request.output_path,
                "edited",
                request.edit_prompt,
                subject_name=self._subject_name(request.image_path, assembled),
            )

        return ToolResult(
            success=True,
            message=(
                "✓ Image edited successfully!\n"
                f"Original: {assembled.subject.source}\n"
                f'Edit request: "{request.edit_prompt}"\n'
                f"Aspect ratio: {ratio}\n"
                + self._saved_lines(record, context)
                + _model_response(result)
            ),
            warnings=assembled.warnings,
            file_path=record.file_path,
        )

    async def get_image_history(self, request: SessionRequest) -> ToolResult:
        session_id = request.conversation_id
        context = self.registry.get(session_id)
        if context is None or not context.media_history:
            return ToolResult(
                success=True,
                message=f"No image history found for session: {session_id}",
                data={"images": []},
            )

        entries = [
            {
                "index": index,
                "reference": f"history:{index}",
                "id": record.id,
                "file_path": record.file_path,
                "prompt": record.prompt,
                "type": record.kind,
                "timestamp": record.created_at.isoformat(),
            }
            for index, record in enumerate(context.media_history)
        ]
        return ToolResult(
            success=True,
            message=(
                f'Image History for session "{session_id}" ({len(entries)} images):\n\n'
                'Use "last" to reference the most recent image, or "history:N" '
                '(e.g., "history:0") to reference by index.\n\n'
                + json.dumps(entries, indent=2, ensure_ascii=False)
            ),
            data={"images": entries},
        )

    async def clear_conversation(self, request: SessionRequest) -> ToolResult:
        async with self.registry.lock(request.conversation_id):
            self.registry.clear(request.conversation_id)
        return ToolResult(
            success=True,
            message=f"Conversation history cleared for ID: {request.conversation_id}",
        )

    def _store(
        self,
        context: SessionContext,
        result: BackendResult,
        output_path: Optional[str],
        kind: str,
        prompt: str,
        subject_name: Optional[str] = None,
    ) -> MediaRecord:
        """Write the aggregated image to disk and record it in the session."""
        data = ensure_png(result.image.data)
        path = self.writer.save(data, output_path, kind=kind, subject_name=subject_name)
        record = MediaRecord(
            file_path=str(path),
            data=data,
            mime_type="image/png",
            prompt=prompt,
            kind=kind,
        )
        context.append(record)
        return record

    @staticmethod
    def _subject_name(reference: str, assembled: AssembledRequest) -> str:
        subject = assembled.subject
        if subject is not None and subject.record is not None:
            return f"history_{subject.record.id}"
        return Path(reference).stem or "image"

    @staticmethod
    def _saved_lines(record: MediaRecord, context: SessionContext) -> str:
        return (
            f"Saved to: {record.file_path}\n"
            f"Session: {context.session_id} (history: {len(context.media_history)} images)"
        )
