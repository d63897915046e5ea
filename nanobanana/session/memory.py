"""Per-session memory: chat transcript and bounded image history."""
import re
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Literal, Optional

from ..config import MAX_IMAGE_HISTORY

Role = Literal["user", "model"]
MediaKind = Literal["generated", "edited"]

LAST_REFERENCE = "last"
_HISTORY_REFERENCE = re.compile(r"^history:(\d+)$")


@dataclass(frozen=True)
class InlineImage:
    """Raw encoded image bytes plus their MIME type."""

    data: bytes
    mime_type: str


@dataclass(frozen=True)
class RequestPart:
    """One ordered part of a request turn: either text or an inline image."""

    text: Optional[str] = None
    image: Optional[InlineImage] = None

    @classmethod
    def from_text(cls, text: str) -> "RequestPart":
        return cls(text=text)

    @classmethod
    def from_image(cls, data: bytes, mime_type: str) -> "RequestPart":
        return cls(image=InlineImage(data=data, mime_type=mime_type))


@dataclass
class Turn:
    role: Role
    parts: List[RequestPart]


def new_image_id() -> str:
    """Generate a session-unique image id."""
    return f"img_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


@dataclass
class MediaRecord:
    """One generated or edited image and where it came from."""

    file_path: str
    data: bytes
    mime_type: str
    prompt: str
    kind: MediaKind
    id: str = field(default_factory=new_image_id)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class SessionContext:
    """In-memory state for one session key.

    ``media_history`` is ordered oldest to newest and never holds more than
    ``MAX_IMAGE_HISTORY`` records. ``transcript`` grows without bound unless
    ``max_transcript_turns`` is set.
    """

    session_id: str
    transcript: List[Turn] = field(default_factory=list)
    media_history: List[MediaRecord] = field(default_factory=list)
    default_ratio: Optional[str] = None
    max_transcript_turns: Optional[int] = None

    def append(self, record: MediaRecord) -> None:
        """Add an image at the tail, evicting the oldest past capacity."""
        self.media_history.append(record)
        while len(self.media_history) > MAX_IMAGE_HISTORY:
            self.media_history.pop(0)

    def lookup(self, reference: str) -> Optional[MediaRecord]:
        """Resolve ``"last"`` or ``"history:N"`` against the image history.

        Returns None when the reference does not name a history entry, either
        because the index is out of range or because the string is not history
        syntax at all. Callers treat the latter as a file path.
        """
        if reference == LAST_REFERENCE:
            return self.media_history[-1] if self.media_history else None

        match = _HISTORY_REFERENCE.match(reference)
        if match:
            index = int(match.group(1))
            if index < len(self.media_history):
                return self.media_history[index]
        return None

    def recent_images(self, count: int) -> List[MediaRecord]:
        """Most recent ``count`` records, oldest first."""
        if count <= 0:
            return []
        return self.media_history[-count:]

    def add_turn(self, turn: Turn) -> None:
        self.transcript.append(turn)
        limit = self.max_transcript_turns
        if limit is not None and len(self.transcript) > limit:
            del self.transcript[: len(self.transcript) - limit]
