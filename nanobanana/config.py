"""Runtime settings loaded from the environment (and .env)."""
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from .errors import InvalidArgument, MissingConfiguration

# Credential lookup order
API_KEY_ENV_VARS = ("GOOGLE_AI_API_KEY", "GEMINI_API_KEY", "GOOGLE_API_KEY")

DEFAULT_SESSION_ID = "default"
DEFAULT_OUTPUT_DIR = Path.home() / "Documents" / "nanobanana_generated"
DEFAULT_IMAGE_MODEL = "gemini-2.5-flash-image"
DEFAULT_CHAT_MODEL = "gemini-2.5-flash"

# Media records kept per session (oldest evicted first)
MAX_IMAGE_HISTORY = 10
# Recent history images sent along when consistency mode is on
MAX_HISTORY_REFERENCES = 3
# Caller-supplied images accepted per chat/edit request
MAX_INPUT_IMAGES = 10

VALID_ASPECT_RATIOS = (
    "1:1",
    "2:3",
    "3:2",
    "3:4",
    "4:3",
    "4:5",
    "5:4",
    "9:16",
    "16:9",
    "21:9",
)


class Settings(BaseModel):
    """Process-wide configuration. Built once at startup."""

    api_key: str
    image_model: str = DEFAULT_IMAGE_MODEL
    chat_model: str = DEFAULT_CHAT_MODEL
    output_dir: Path = Field(default_factory=lambda: DEFAULT_OUTPUT_DIR)
    # Only newer image models accept an explicit size ("1K", "2K", "4K")
    image_size: Optional[str] = None
    # None keeps chat transcripts unbounded
    max_transcript_turns: Optional[int] = Field(default=None, ge=1)
    log_level: str = "INFO"


def _optional_positive_int(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if not raw:
        return None
    try:
        value = int(raw)
    except ValueError:
        raise InvalidArgument(f"{name} must be an integer, got {raw!r}") from None
    if value < 1:
        raise InvalidArgument(f"{name} must be at least 1, got {value}")
    return value


def load_settings() -> Settings:
    """Read settings from the environment, loading a .env file first.

    Raises:
        MissingConfiguration: no API credential is available. This is fatal
            at startup rather than a per-call error.
        InvalidArgument: a numeric setting is malformed or out of range.
    """
    load_dotenv()

    api_key = next((os.getenv(name) for name in API_KEY_ENV_VARS if os.getenv(name)), None)
    if not api_key:
        raise MissingConfiguration(
            f"{API_KEY_ENV_VARS[0]} environment variable is required "
            f"(also accepted: {', '.join(API_KEY_ENV_VARS[1:])})"
        )

    output_dir = os.getenv("NANOBANANA_OUTPUT_DIR")
    return Settings(
        api_key=api_key,
        image_model=os.getenv("NANOBANANA_IMAGE_MODEL") or DEFAULT_IMAGE_MODEL,
        chat_model=os.getenv("NANOBANANA_CHAT_MODEL") or DEFAULT_CHAT_MODEL,
        output_dir=Path(output_dir).expanduser() if output_dir else DEFAULT_OUTPUT_DIR,
        image_size=os.getenv("NANOBANANA_IMAGE_SIZE") or None,
        max_transcript_turns=_optional_positive_int("NANOBANANA_MAX_TRANSCRIPT_TURNS"),
        log_level=os.getenv("NANOBANANA_LOG_LEVEL") or "INFO",
    )
