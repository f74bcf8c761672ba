"""Tests for upload storage on disk."""

import errno
import os
from concurrent.futures import ThreadPoolExecutor

import pytest

from moderation import storage as storage_module
from moderation.storage import StorageError, safe_upload_ext


def test_stage_writes_unique_temp_file(storage, sharp_png) -> None:
    a = storage.stage(data=sharp_png, original_filename="Living Room.JPEG", content_type="image/jpeg")
    b = storage.stage(data=sharp_png, original_filename="Living Room.JPEG", content_type="image/jpeg")

    assert a.path != b.path
    assert os.path.dirname(a.path) == storage.temp_dir
    assert a.path.endswith(".jpg")
    assert a.dimensions == (640, 480)
    assert a.size_bytes == len(sharp_png)


def test_stage_keeps_unknown_dimensions_empty(storage) -> None:
    raw = storage.stage(data=b"not an image", original_filename="x.png", content_type="image/png")

    assert raw.dimensions is None


def test_move_refuses_to_overwrite(storage, sharp_png) -> None:
    staged = storage.stage(data=sharp_png, original_filename="a.png", content_type="image/png")
    dest = storage.move_to_property(staged.path, 1)
    with open(staged.path, "wb") as f:
        f.write(b"same name again")

    with pytest.raises(StorageError):
        storage.move_to_property(staged.path, 1)
    assert os.path.exists(dest)


def test_move_back_restores_file(storage, staged) -> None:
    dest = storage.move_to_review(staged.path, 3)
    storage.move_back(dest, staged.path)

    assert os.path.exists(staged.path)
    assert not os.path.exists(dest)


def test_delete_missing_file_is_fine(storage, tmp_path) -> None:
    assert storage.delete(str(tmp_path / "gone.png"))


def test_public_url_from_relative_and_absolute_paths(storage, staged) -> None:
    dest = storage.move_to_property(staged.path, 9)
    rel = storage.relative_path(dest)

    assert rel == f"properties/9/{os.path.basename(dest)}"
    assert storage.public_url(dest) == f"https://cdn.example.test/uploads/{rel}"
    assert storage.public_url(rel) == storage.public_url(dest)


def _cross_device(src, dst):
    raise OSError(errno.EXDEV, "Invalid cross-device link")


def test_move_back_across_filesystems(storage, staged, monkeypatch) -> None:
    monkeypatch.setattr(storage_module.os, "replace", _cross_device)

    dest = storage.move_to_property(staged.path, 4)
    assert os.path.exists(dest)
    assert not os.path.exists(staged.path)

    storage.move_back(dest, staged.path)

    assert os.path.exists(staged.path)
    assert not os.path.exists(dest)


def test_move_into_existing_folder(storage, staged) -> None:
    folder = os.path.join(storage.properties_dir, "6")
    os.makedirs(folder)

    dest = storage.move_to_property(staged.path, 6)

    assert os.path.dirname(dest) == folder
    assert os.path.exists(dest)


def test_concurrent_folder_creation(storage, sharp_png) -> None:
    files = [storage.stage(data=sharp_png, original_filename=f"{i}.png", content_type="image/png") for i in range(8)]

    with ThreadPoolExecutor(max_workers=8) as pool:
        moved = list(pool.map(lambda raw: storage.move_to_review(raw.path, 2), files))

    assert len(set(moved)) == 8
    assert all(os.path.exists(p) for p in moved)


@pytest.mark.parametrize(
    "filename, content_type, ext",
    [("a.JPEG", "", ".jpg"), ("a", "image/png", ".png"), ("a.webp", "image/jpeg", ".webp"), ("blob", "image/jpg", ".jpg")],
)
def test_safe_upload_ext(filename, content_type, ext) -> None:
    assert safe_upload_ext(filename=filename, content_type=content_type) == ext
