# tests/test_manifest.py
import pytest

from render_worker.services.manifest import (
    build_concat_manifest,
    compute_image_duration,
    write_concat_manifest,
)


def test_compute_image_duration_splits_evenly():
    assert compute_image_duration(10.0, 2) == 5.0
    assert compute_image_duration(9.0, 4) == pytest.approx(2.25)

def test_compute_image_duration_floors_short_and_degenerate_values():
    assert compute_image_duration(1.5, 3) == 1.0
    assert compute_image_duration(0.0, 1) == 1.0
    assert compute_image_duration(float("nan"), 2) == 1.0
    assert compute_image_duration(1.0, 4, minimum=0.5) == 0.5

def test_compute_image_duration_needs_an_image():
    with pytest.raises(ValueError):
        compute_image_duration(10.0, 0)

def test_manifest_repeats_last_image_without_duration():
    text = build_concat_manifest(["/tmp/a.png", "/tmp/b.png", "/tmp/c.png"], 2.5)
    assert text == (
        "file '/tmp/a.png'\n"
        "duration 2.5\n"
        "file '/tmp/b.png'\n"
        "duration 2.5\n"
        "file '/tmp/c.png'\n"
        "duration 2.5\n"
        "file '/tmp/c.png'\n"
    )

def test_manifest_entry_count_matches_images():
    images = [f"/tmp/img_{i}.jpg" for i in range(7)]
    lines = build_concat_manifest(images, 1.25).splitlines()
    assert sum(1 for l in lines if l.startswith("duration ")) == 7
    assert sum(1 for l in lines if l.startswith("file ")) == 8
    assert lines[-1] == "file '/tmp/img_6.jpg'"

def test_manifest_uses_forward_slashes():
    text = build_concat_manifest([r"C:\Users\me\AppData\Local\Temp\img1.png"], 3.0)
    assert "\\" not in text
    assert "file 'C:/Users/me/AppData/Local/Temp/img1.png'" in text

def test_manifest_escapes_single_quotes():
    text = build_concat_manifest(["/tmp/it's.png"], 3.0)
    assert text.splitlines()[0] == "file '/tmp/it'\\''s.png'"

def test_manifest_rejects_empty_input():
    with pytest.raises(ValueError):
        build_concat_manifest([], 1.0)
    with pytest.raises(ValueError):
        build_concat_manifest(["/tmp/a.png"], 0)

def test_write_concat_manifest_overwrites(tmp_path):
    out = tmp_path / "images.txt"
    out.write_text("stale content\n", encoding="utf-8")

    content = write_concat_manifest([str(tmp_path / "a.png")], 4.0, str(out))

    assert out.read_text(encoding="utf-8") == content
    assert "stale" not in content
    assert content.count("file ") == 2
