"""Compose ordered request parts for chat, generate and edit calls."""
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from ..config import MAX_HISTORY_REFERENCES, MAX_INPUT_IMAGES
from ..errors import NotFound
from ..session.memory import RequestPart, SessionContext
from .references import ReferenceResolver, ResolvedImage

logger = logging.getLogger(__name__)

CONSISTENCY_INSTRUCTION = (
    "IMPORTANT: Maintain visual consistency with the provided reference images "
    "(same style, character appearance, color palette)."
)

EDIT_DIRECTIVE = (
    "IMPORTANT: Create a completely new image that incorporates the requested changes "
    "while maintaining the style and overall composition of the original."
)


@dataclass
class AssembledRequest:
    parts: List[RequestPart]
    warnings: List[str] = field(default_factory=list)
    # Edit only: the image being edited
    subject: Optional[ResolvedImage] = None
    history_images: int = 0


def build_edit_instruction(edit_prompt: str) -> str:
    return (
        "Based on this image, generate a new edited version with the following "
        f"modifications: {edit_prompt}\n\n{EDIT_DIRECTIVE}"
    )


class RequestAssembler:
    def __init__(self, resolver: ReferenceResolver):
        self.resolver = resolver

    def _resolve_optional(
        self,
        context: SessionContext,
        references: Sequence[str],
        label: str,
        limit: Optional[int] = None,
    ) -> Tuple[List[RequestPart], List[str]]:
        """Best-effort resolution: failures become warnings, not errors."""
        parts: List[RequestPart] = []
        warnings: List[str] = []

        if limit is not None and len(references) > limit:
            warnings.append(
                f"Only the first {limit} {label}s are used; "
                f"{len(references) - limit} ignored."
            )
            references = references[:limit]

        for reference in references:
            try:
                image = self.resolver.resolve_or_path(context, reference)
            except NotFound as e:
                logger.info("Skipping %s %r: %s", label, reference, e)
                warnings.append(f"Could not load {label} {reference!r}: {e}")
                continue
            except OSError as e:
                warnings.append(f"Could not read {label} {reference!r}: {e}")
                continue
            parts.append(RequestPart.from_image(image.data, image.mime_type))
        return parts, warnings

    def chat(
        self, context: SessionContext, message: str, images: Sequence[str] = ()
    ) -> AssembledRequest:
        """Parts for a new user turn: images in caller order, then the text."""
        parts, warnings = self._resolve_optional(
            context, list(images), "image", limit=MAX_INPUT_IMAGES
        )
        parts.append(RequestPart.from_text(message))
        return AssembledRequest(parts=parts, warnings=warnings)

    def generate(
        self,
        context: SessionContext,
        prompt: str,
        reference_images: Sequence[str] = (),
        use_image_history: bool = False,
    ) -> AssembledRequest:
        """Manual references, then recent history (consistency mode), then the prompt."""
        parts, warnings = self._resolve_optional(context, list(reference_images), "reference image")

        history = context.recent_images(MAX_HISTORY_REFERENCES) if use_image_history else []
        for record in history:
            parts.append(RequestPart.from_image(record.data, record.mime_type))

        final_prompt = prompt
        if history:
            final_prompt = f"{prompt}\n\n{CONSISTENCY_INSTRUCTION}"
        parts.append(RequestPart.from_text(final_prompt))

        return AssembledRequest(parts=parts, warnings=warnings, history_images=len(history))

    def edit(
        self,
        context: SessionContext,
        image_reference: str,
        edit_prompt: str,
        reference_images: Sequence[str] = (),
    ) -> AssembledRequest:
        """Reference images, the edit instruction, then the subject image.

        Raises:
            NotFound: the subject image cannot be resolved.
        """
        subject = self.resolver.resolve_or_path(context, image_reference)

        parts, warnings = self._resolve_optional(
            context, list(reference_images), "reference image", limit=MAX_INPUT_IMAGES
        )
        parts.append(RequestPart.from_text(build_edit_instruction(edit_prompt)))
        parts.append(RequestPart.from_image(subject.data, subject.mime_type))

        return AssembledRequest(parts=parts, warnings=warnings, subject=subject)
