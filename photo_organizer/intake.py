# photo_organizer/intake.py
"""
Turns uploaded files into Photo objects.

Both ways a user can hand us files (the picker and drag-and-drop onto the
uploader) end up here, so filtering and preview allocation live in one place.
"""
from __future__ import annotations

import logging
import mimetypes
from typing import Any, Iterable

from photo_organizer.models import Photo
from photo_organizer.previews import PreviewStore

logger = logging.getLogger(__name__)

IMAGE_MIME_PREFIX = "image/"


def content_type_of(raw_file: Any) -> str:
    """Returns the declared content type of an upload, guessing from its name if absent."""
    mime_type = getattr(raw_file, "type", None)
    if not mime_type:
        mime_type, _ = mimetypes.guess_type(getattr(raw_file, "name", "") or "")
    return mime_type or ""


def is_image(raw_file: Any) -> bool:
    return content_type_of(raw_file).startswith(IMAGE_MIME_PREFIX)


def _read_bytes(raw_file: Any) -> bytes:
    # Streamlit's UploadedFile exposes getvalue(); plain file objects only read().
    if hasattr(raw_file, "getvalue"):
        return raw_file.getvalue()
    return raw_file.read()


def select_photos(raw_files: Iterable[Any] | None, previews: PreviewStore) -> list[Photo]:
    """
    Filters uploads down to images and allocates a preview for each one.

    Non-image entries are dropped without an error. The relative order of the
    remaining files is preserved. The caller owns the returned previews and
    must revoke them when the photos are discarded.

    Args:
        raw_files: File-like objects with a `name`, a `type` and `getvalue()`.
        previews: The store that issues the displayable references.

    Returns:
        One Photo per accepted image, in input order.
    """
    photos = []
    skipped = 0
    try:
        for raw_file in raw_files or []:
            if not is_image(raw_file):
                skipped += 1
                logger.debug(f"Skipping non-image upload '{getattr(raw_file, 'name', '?')}'.")
                continue
            mime_type = content_type_of(raw_file)
            data = _read_bytes(raw_file)
            photos.append(Photo(
                name=raw_file.name,
                mime_type=mime_type,
                data=data,
                preview_url=previews.allocate(data, mime_type),
            ))
    except Exception:
        # Nobody else will ever see these photos, so their previews die here.
        logger.error(f"Reading uploads failed after {len(photos)} photo(s); releasing their previews.")
        previews.revoke_all(photo.preview_url for photo in photos)
        raise

    logger.info(f"Accepted {len(photos)} photo(s), skipped {skipped} non-image file(s).")
    return photos
