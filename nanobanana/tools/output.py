"""Persist returned image bytes as PNG files."""
import io
import logging
import time
from pathlib import Path
from typing import Optional

import PIL.Image

logger = logging.getLogger(__name__)


def normalize_output_path(requested_path: str) -> Path:
    """Absolute version of a caller path with its extension forced to .png."""
    path = Path(requested_path).expanduser()
    if not path.is_absolute():
        path = Path.cwd() / path
    return path.with_suffix(".png")


def ensure_png(data: bytes) -> bytes:
    """Re-encode non-PNG image bytes so file content matches the extension."""
    try:
        with PIL.Image.open(io.BytesIO(data)) as image:
            if image.format == "PNG":
                return data
            buffer = io.BytesIO()
            image.save(buffer, format="PNG")
    except (PIL.UnidentifiedImageError, OSError):
        logger.warning("Could not identify returned image data; writing it unchanged")
        return data
    return buffer.getvalue()


class ImageWriter:
    def __init__(self, output_dir: Path):
        self.output_dir = Path(output_dir)

    def default_path(self, kind: str, subject_name: Optional[str] = None) -> Path:
        millis = int(time.time() * 1000)
        if kind == "edited":
            filename = f"{subject_name or 'image'}_edited_{millis}.png"
        else:
            filename = f"generated_{millis}.png"
        return self.output_dir / filename

    def save(
        self,
        data: bytes,
        requested_path: Optional[str] = None,
        kind: str = "generated",
        subject_name: Optional[str] = None,
    ) -> Path:
        """Write ``data`` and return the absolute path used.

        Without ``requested_path`` the file lands in the output directory
        under a timestamped name.
        """
        if requested_path:
            path = normalize_output_path(requested_path)
        else:
            path = self.default_path(kind, subject_name)

        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        logger.info("Saved %s image to %s", kind, path)
        return path.resolve()
