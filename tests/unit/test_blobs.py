"""Tests for sitedpr.store.blobs - photo uploads."""

from __future__ import annotations

import pytest

from sitedpr.store.blobs import LocalBlobStore, PhotoUpload, upload_photos


class FlakyBlobStore:
    """Fails for any photo named bad.jpg."""

    def __init__(self):
        self.paths: list[str] = []

    async def upload(self, data: bytes, path: str) -> str:
        if path.endswith("bad.jpg"):
            raise IOError("upload rejected")
        self.paths.append(path)
        return f"https://cdn.example.com/{path}"


class TestLocalBlobStore:
    async def test_writes_file_and_returns_uri(self, tmp_path):
        store = LocalBlobStore(tmp_path)

        url = await store.upload(b"jpeg-bytes", "reports/2024-03-01/photo.jpg")

        assert (tmp_path / "reports/2024-03-01/photo.jpg").read_bytes() == b"jpeg-bytes"
        assert url.startswith("file://")

    async def test_public_base_url(self, tmp_path):
        store = LocalBlobStore(tmp_path, public_base_url="https://cdn.example.com/")

        url = await store.upload(b"x", "a/b.jpg")

        assert url == "https://cdn.example.com/a/b.jpg"

    async def test_rejects_path_escape(self, tmp_path):
        store = LocalBlobStore(tmp_path / "root")

        with pytest.raises(ValueError):
            await store.upload(b"x", "../outside.jpg")


class TestUploadPhotos:
    async def test_sequential_with_progress(self):
        store = FlakyBlobStore()
        progress: list[tuple[int, int]] = []
        photos = [PhotoUpload("one.jpg", b"1"), PhotoUpload("two.jpg", b"2")]

        attachments, errors = await upload_photos(
            store, photos, "reports/x", lambda done, total: progress.append((done, total))
        )

        assert [a.name for a in attachments] == ["one.jpg", "two.jpg"]
        assert errors == []
        assert progress == [(1, 2), (2, 2)]
        assert store.paths == ["reports/x/000_one.jpg", "reports/x/001_two.jpg"]

    async def test_failed_photo_is_skipped(self):
        photos = [PhotoUpload("bad.jpg", b"1"), PhotoUpload("good.jpg", b"2")]

        attachments, errors = await upload_photos(FlakyBlobStore(), photos, "p")

        assert [a.name for a in attachments] == ["good.jpg"]
        assert len(errors) == 1
        assert errors[0].startswith("bad.jpg")


class TestPhotosOnAddItems:
    async def test_photos_attached_to_every_item(self, service, headworks_item, powerhouse_item):
        service.blobs = FlakyBlobStore()

        result = await service.add_items(
            [headworks_item, powerhouse_item],
            "with photos",
            photos=[PhotoUpload("site.jpg", b"1"), PhotoUpload("bad.jpg", b"2")],
        )

        assert all([p.name for p in e.photos] == ["site.jpg"] for e in service.reports.current_entries)
        assert any("Photo upload failed" in w for w in result.warnings)

    async def test_photos_without_blob_store(self, service, headworks_item):
        result = await service.add_items(
            [headworks_item], "with photos", photos=[PhotoUpload("site.jpg", b"1")]
        )

        assert service.reports.current_entries[0].photos == []
        assert any("not configured" in w for w in result.warnings)
