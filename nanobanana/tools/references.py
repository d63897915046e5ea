"""Resolve image references ("last", "history:N" or a path) into bytes."""
import io
import logging
import mimetypes
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import PIL.Image

from ..errors import NotFound
from ..session.memory import MediaRecord, SessionContext

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "image/png"

_SUFFIX_MIME_TYPES = {
    '.png': 'image/png',
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.webp': 'image/webp',
    '.gif': 'image/gif',
}


@dataclass(frozen=True)
class ResolvedImage:
    data: bytes
    mime_type: str
    # Human-readable origin, shown in tool results
    source: str
    # Set when the reference named a history entry
    record: Optional[MediaRecord] = None


def sniff_mime_type(data: bytes, filename: Optional[str] = None) -> str:
    """Detect an image MIME type from its content.

    Falls back to the file suffix, then to PNG, when Pillow cannot identify
    the bytes.
    """
    try:
        with PIL.Image.open(io.BytesIO(data)) as image:
            fmt = image.format
    except (PIL.UnidentifiedImageError, OSError):
        fmt = None
    if fmt and fmt in PIL.Image.MIME:
        return PIL.Image.MIME[fmt]

    if filename:
        guessed, _ = mimetypes.guess_type(filename)
        if guessed and guessed.startswith("image/"):
            return guessed
        ext = os.path.splitext(filename)[1].lower()
        if ext in _SUFFIX_MIME_TYPES:
            return _SUFFIX_MIME_TYPES[ext]
    return DEFAULT_MIME_TYPE


class ReferenceResolver:
    """Turns reference strings into image payloads for one session.

    Any string that is not history syntax is a path, so a typo such as
    ``"histroy:1"`` ends in a NotFound for a missing file rather than a
    syntax error.
    """

    def __init__(self, output_dir: Path):
        self.output_dir = Path(output_dir)

    def find_path(self, reference: str) -> Optional[Path]:
        """Locate a referenced file, trying cwd first and then the output dir."""
        path = Path(reference).expanduser()
        if not path.is_absolute():
            path = Path.cwd() / path
        if path.is_file():
            return path

        fallback = self.output_dir / Path(reference).name
        if fallback.is_file():
            return fallback
        return None

    def resolve_or_path(self, context: SessionContext, reference: str) -> ResolvedImage:
        """Resolve a history reference, or failing that, a file path.

        Raises:
            NotFound: neither the history nor the filesystem has the image.
        """
        record = context.lookup(reference)
        if record is not None:
            return ResolvedImage(
                data=record.data,
                mime_type=record.mime_type,
                source=f"[{reference}] {record.file_path}",
                record=record,
            )

        path = self.find_path(reference)
        if path is None:
            raise NotFound(
                f"Image file not found: {reference}. "
                "Use 'last' or 'history:N' to reference session images."
            )

        data = path.read_bytes()
        logger.debug("Resolved %r to %s (%d bytes)", reference, path, len(data))
        return ResolvedImage(
            data=data,
            mime_type=sniff_mime_type(data, path.name),
            source=str(path),
        )
