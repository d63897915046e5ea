"""Service wiring - one registry, backend and service per process."""
from typing import Optional

from .config import Settings, load_settings
from .session.registry import SessionRegistry
from .tools.backend import GeminiBackend, ImageBackend
from .tools.image_service import ImageSessionService
from .tools.output import ImageWriter
from .tools.references import ReferenceResolver


def build_service(
    settings: Optional[Settings] = None,
    backend: Optional[ImageBackend] = None,
) -> ImageSessionService:
    """Assemble the service from settings (read from the environment by default)."""
    settings = settings or load_settings()
    return ImageSessionService(
        registry=SessionRegistry(max_transcript_turns=settings.max_transcript_turns),
        backend=backend or GeminiBackend(settings),
        resolver=ReferenceResolver(settings.output_dir),
        writer=ImageWriter(settings.output_dir),
    )
