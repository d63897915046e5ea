from __future__ import annotations

import asyncio
import io
from pathlib import Path

import PIL.Image
import pytest

from nanobanana.config import Settings
from nanobanana.runtime import build_service
from nanobanana.session.memory import InlineImage, MediaRecord
from nanobanana.tools.backend import BackendResult


def make_image_bytes(color: str = "red", fmt: str = "PNG", size: tuple[int, int] = (4, 4)) -> bytes:
    buffer = io.BytesIO()
    PIL.Image.new("RGB", size, color).save(buffer, format=fmt)
    return buffer.getvalue()


def make_record(prompt: str, kind: str = "generated", color: str = "red") -> MediaRecord:
    return MediaRecord(
        file_path=f"/tmp/{prompt}.png",
        data=make_image_bytes(color),
        mime_type="image/png",
        prompt=prompt,
        kind=kind,
    )


class FakeBackend:
    """Records every call; replies with a fresh PNG unless told otherwise."""

    def __init__(self) -> None:
        self.image_calls: list[dict] = []
        self.chat_calls: list[dict] = []
        self.next_results: list[BackendResult] = []
        self.chat_reply = "Hello from Gemini"
        self.chat_error: Exception | None = None
        self.delay = 0.0
        self.events: list[str] = []

    async def generate_image(self, parts, aspect_ratio, enable_search=False):
        self.events.append("start")
        self.image_calls.append(
            {"parts": list(parts), "aspect_ratio": aspect_ratio, "enable_search": enable_search}
        )
        if self.delay:
            await asyncio.sleep(self.delay)
        self.events.append("end")
        if self.next_results:
            return self.next_results.pop(0)
        return BackendResult(
            text="Here you go",
            image=InlineImage(data=make_image_bytes("blue"), mime_type="image/png"),
        )

    async def chat(self, transcript, turn, system_instruction=None):
        self.chat_calls.append(
            {"transcript": list(transcript), "turn": turn, "system_instruction": system_instruction}
        )
        if self.chat_error is not None:
            raise self.chat_error
        return self.chat_reply


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    return tmp_path / "generated"


@pytest.fixture
def workdir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.chdir(work)
    return work


@pytest.fixture
def settings(output_dir: Path) -> Settings:
    return Settings(api_key="test-key", output_dir=output_dir)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def service(settings: Settings, backend: FakeBackend, workdir: Path):
    return build_service(settings, backend=backend)
