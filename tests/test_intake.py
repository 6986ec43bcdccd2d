"""
Unit tests for photo intake and preview references.
"""

import io

import pytest

from photo_organizer.exceptions import PreviewError
from photo_organizer.intake import is_image, select_photos
from photo_organizer.previews import PreviewStore
from tests.helpers import BrokenUpload, FakeUpload


class TestSelectPhotos:
    """Tests for filtering uploads into photos."""

    def test_drops_non_images_and_keeps_order(self, previews):
        files = [
            FakeUpload("b.png", "image/png"),
            FakeUpload("notes.txt", "text/plain"),
            FakeUpload("a.jpg", "image/jpeg"),
            FakeUpload("clip.mp4", "video/mp4"),
            FakeUpload("c.gif", "image/gif"),
        ]

        photos = select_photos(files, previews)

        assert [p.name for p in photos] == ["b.png", "a.jpg", "c.gif"]
        assert [p.mime_type for p in photos] == ["image/png", "image/jpeg", "image/gif"]

    def test_allocates_one_live_preview_per_photo(self, uploads, previews):
        photos = select_photos(uploads, previews)

        assert previews.live_count() == len(uploads)
        assert len({p.preview_url for p in photos}) == len(photos)
        for photo, upload in zip(photos, uploads):
            assert previews.fetch(photo.preview_url) == upload.getvalue()

    def test_only_non_images_gives_empty_list(self, previews):
        photos = select_photos([FakeUpload("a.pdf", "application/pdf")], previews)

        assert photos == []
        assert previews.live_count() == 0

    def test_none_input_is_empty(self, previews):
        assert select_photos(None, previews) == []

    def test_guesses_type_from_name_when_missing(self):
        assert is_image(FakeUpload("holiday.jpeg", None))
        assert not is_image(FakeUpload("README", None))

    def test_unreadable_upload_releases_earlier_previews(self, previews):
        files = [
            FakeUpload("a.jpg", "image/jpeg"),
            FakeUpload("b.jpg", "image/jpeg"),
            BrokenUpload("c.jpg", "image/jpeg"),
        ]

        with pytest.raises(OSError, match="upload stream closed"):
            select_photos(files, previews)

        assert previews.live_count() == 0
        assert previews.revoked_count == 2

    def test_accepts_plain_file_objects(self, previews):
        raw = io.BytesIO(b"raw-bytes")
        raw.name = "scan.png"
        raw.type = "image/png"

        photos = select_photos([raw], previews)

        assert photos[0].data == b"raw-bytes"


class TestPreviewStore:
    """Tests for allocating and revoking preview references."""

    def test_revoke_releases_reference(self):
        store = PreviewStore()
        url = store.allocate(b"abc", "image/png")

        store.revoke(url)

        assert not store.is_live(url)
        assert store.live_count() == 0
        with pytest.raises(PreviewError, match="not live"):
            store.fetch(url)

    def test_double_revoke_raises(self):
        store = PreviewStore()
        url = store.allocate(b"abc", "image/png")
        store.revoke(url)

        with pytest.raises(PreviewError, match="already revoked"):
            store.revoke(url)
        assert store.revoked_count == 1

    def test_unknown_reference(self):
        store = PreviewStore()

        with pytest.raises(PreviewError, match="unknown"):
            store.fetch("preview://nope")
        with pytest.raises(PreviewError):
            store.revoke("preview://nope")

    def test_mime_type_lookup(self):
        store = PreviewStore()
        url = store.allocate(b"abc", "image/webp")

        assert store.mime_type(url) == "image/webp"
