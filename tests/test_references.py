from __future__ import annotations

from pathlib import Path

import pytest

from nanobanana.errors import NotFound
from nanobanana.session.memory import SessionContext
from nanobanana.tools.references import ReferenceResolver, sniff_mime_type

from conftest import make_image_bytes, make_record


@pytest.fixture
def resolver(output_dir: Path) -> ReferenceResolver:
    return ReferenceResolver(output_dir)


def test_history_reference_uses_in_memory_bytes(resolver, workdir) -> None:
    context = SessionContext(session_id="s")
    record = make_record("cat")
    context.append(record)

    resolved = resolver.resolve_or_path(context, "last")

    assert resolved.data == record.data
    assert resolved.record is record
    assert resolved.source == f"[last] {record.file_path}"


def test_relative_path_resolves_against_cwd(resolver, workdir) -> None:
    (workdir / "in.png").write_bytes(make_image_bytes())

    resolved = resolver.resolve_or_path(SessionContext(session_id="s"), "in.png")

    assert resolved.source == str(workdir.resolve() / "in.png")
    assert resolved.mime_type == "image/png"
    assert resolved.record is None


def test_falls_back_to_basename_in_output_dir(resolver, workdir, output_dir) -> None:
    output_dir.mkdir()
    (output_dir / "generated_1.png").write_bytes(make_image_bytes())

    resolved = resolver.resolve_or_path(SessionContext(session_id="s"), "elsewhere/generated_1.png")

    assert resolved.source == str(output_dir / "generated_1.png")


def test_history_syntax_falls_through_to_path(resolver, workdir) -> None:
    (workdir / "history:7").write_bytes(make_image_bytes())

    resolved = resolver.resolve_or_path(SessionContext(session_id="s"), "history:7")

    assert resolved.record is None
    assert resolved.source.endswith("history:7")


def test_unresolvable_reference_raises_not_found(resolver, workdir) -> None:
    with pytest.raises(NotFound, match="missing.png"):
        resolver.resolve_or_path(SessionContext(session_id="s"), "missing.png")


def test_last_with_empty_history_is_not_found(resolver, workdir) -> None:
    with pytest.raises(NotFound, match="last"):
        resolver.resolve_or_path(SessionContext(session_id="s"), "last")


def test_mime_type_is_sniffed_from_content(resolver, workdir) -> None:
    (workdir / "photo.png").write_bytes(make_image_bytes(fmt="JPEG"))

    resolved = resolver.resolve_or_path(SessionContext(session_id="s"), "photo.png")

    assert resolved.mime_type == "image/jpeg"


def test_sniff_falls_back_to_suffix_then_png() -> None:
    assert sniff_mime_type(b"not an image", "x.webp") == "image/webp"
    assert sniff_mime_type(b"not an image", "x.unknown") == "image/png"
    assert sniff_mime_type(b"not an image") == "image/png"
