from __future__ import annotations

import io
from pathlib import Path

import PIL.Image

from nanobanana.tools.output import ImageWriter, ensure_png, normalize_output_path

from conftest import make_image_bytes


def test_requested_path_without_extension_gets_png(workdir) -> None:
    assert normalize_output_path("out") == workdir.resolve() / "out.png"


def test_requested_extension_is_replaced(workdir) -> None:
    assert normalize_output_path("out.jpg") == workdir.resolve() / "out.png"
    assert normalize_output_path("shots/a.b.jpeg") == workdir.resolve() / "shots" / "a.b.png"


def test_absolute_requested_path_kept(tmp_path, workdir) -> None:
    assert normalize_output_path(str(tmp_path / "x.webp")) == tmp_path / "x.png"


def test_default_generate_name(output_dir, workdir) -> None:
    path = ImageWriter(output_dir).save(make_image_bytes())

    assert path.parent == output_dir.resolve()
    assert path.name.startswith("generated_")
    assert path.suffix == ".png"


def test_default_edit_name_uses_subject(output_dir, workdir) -> None:
    path = ImageWriter(output_dir).save(make_image_bytes(), kind="edited", subject_name="cat")

    assert path.name.startswith("cat_edited_")
    assert path.suffix == ".png"


def test_save_creates_parent_and_writes_bytes(workdir) -> None:
    data = make_image_bytes()
    path = ImageWriter(Path("unused")).save(data, "nested/dir/out.jpg")

    assert path == (workdir / "nested" / "dir" / "out.png").resolve()
    assert path.read_bytes() == data


def test_ensure_png_keeps_png_bytes() -> None:
    data = make_image_bytes()
    assert ensure_png(data) is data


def test_ensure_png_converts_jpeg() -> None:
    converted = ensure_png(make_image_bytes(fmt="JPEG"))
    with PIL.Image.open(io.BytesIO(converted)) as image:
        assert image.format == "PNG"


def test_ensure_png_passes_through_unknown_bytes() -> None:
    assert ensure_png(b"opaque") == b"opaque"
