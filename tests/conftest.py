"""
Shared fixtures for the photo organizer tests.
"""

import pytest

from photo_organizer.intake import select_photos
from photo_organizer.previews import PreviewStore
from tests.helpers import FakeUpload, make_png


@pytest.fixture
def previews():
    return PreviewStore()


@pytest.fixture
def png_bytes():
    return make_png()


@pytest.fixture
def uploads():
    """Six distinct image uploads, photo0.jpg .. photo5.jpg."""
    return [FakeUpload(f"photo{i}.jpg", "image/jpeg", f"jpeg-{i}".encode()) for i in range(6)]


@pytest.fixture
def photos(uploads, previews):
    return select_photos(uploads, previews)
