# photo_organizer/export.py
"""
Bundles the photos of one folder into a downloadable zip archive.
"""
from __future__ import annotations

import logging
import re
import zipfile
from concurrent.futures import ThreadPoolExecutor
from io import BytesIO
from typing import Sequence

from photo_organizer.exceptions import ExportError
from photo_organizer.models import ExportArchive, Folder, Photo
from photo_organizer.previews import PreviewStore

logger = logging.getLogger(__name__)


def archive_filename(folder_name: str) -> str:
    """Lower-cases the folder name and replaces every non-alphanumeric character with '_'."""
    return re.sub(r'[^a-z0-9]', '_', folder_name, flags=re.IGNORECASE).lower() + ".zip"


def resolve_photos(folder: Folder, all_photos: Sequence[Photo]) -> list[Photo]:
    """
    Maps a folder's indices onto the submitted photo list.

    Raises:
        ExportError: If any index is not an integer within the list.
    """
    resolved = []
    for index in folder.photo_indices:
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(all_photos):
            raise ExportError(
                f"Folder '{folder.name}' refers to photo {index!r}, "
                f"but only {len(all_photos)} photo(s) were submitted."
            )
        resolved.append(all_photos[index])
    return resolved


def export_folder(folder: Folder, all_photos: Sequence[Photo], previews: PreviewStore,
                  fetch_workers: int = 4) -> ExportArchive:
    """
    Fetches every photo of the folder through its preview and zips them.

    Entries are named after the original filenames. Two photos sharing a name
    end up as a single entry holding the bytes of the later one.

    Args:
        folder: The folder to export.
        all_photos: The full photo list the folder's indices refer to.
        previews: The store that holds the photos' preview bytes.
        fetch_workers: How many previews to read concurrently.

    Returns:
        The archive bytes together with the download filename.

    Raises:
        ExportError: If an index is out of range or any single fetch fails.
    """
    photos = resolve_photos(folder, all_photos)
    logger.info(f"Exporting folder '{folder.name}' with {len(photos)} photo(s).")

    try:
        workers = max(1, min(fetch_workers, len(photos) or 1))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="export") as executor:
            contents = list(executor.map(lambda photo: previews.fetch(photo.preview_url), photos))

        entries = {}
        for photo, data in zip(photos, contents):
            if photo.name in entries:
                logger.warning(f"Duplicate filename '{photo.name}' in folder '{folder.name}'; keeping the last one.")
            entries[photo.name] = data

        buffer = BytesIO()
        with zipfile.ZipFile(buffer, 'w', zipfile.ZIP_DEFLATED) as zf:
            for name, data in entries.items():
                zf.writestr(name, data)
    except Exception as e:
        logger.error(f"Failed to create archive for folder '{folder.name}'.", exc_info=True)
        raise ExportError(f"Could not create the archive for '{folder.name}': {e}") from e

    archive = ExportArchive(filename=archive_filename(folder.name), data=buffer.getvalue(),
                            entry_names=list(entries))
    logger.info(f"Created {archive.filename} with {archive.entry_count} entries ({len(archive.data)} bytes).")
    return archive
