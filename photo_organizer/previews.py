# photo_organizer/previews.py
"""
Displayable references for uploaded photos.

A preview reference is an opaque 'preview://<id>' string that the UI can turn
back into image bytes without touching the original upload. References are
not cleaned up implicitly: whoever allocates one must revoke it exactly once
when the photo stops being shown.
"""
import logging
import threading
import uuid
from collections import OrderedDict

from .exceptions import PreviewError

logger = logging.getLogger(__name__)

PREVIEW_SCHEME = "preview://"


class PreviewStore:
    def __init__(self):
        self._entries = OrderedDict()
        self.revoked_count = 0
        self.lock = threading.Lock()

    def allocate(self, data: bytes, mime_type: str) -> str:
        """Register image bytes and return a new live reference to them."""
        url = f"{PREVIEW_SCHEME}{uuid.uuid4().hex}"
        with self.lock:
            self._entries[url] = (bytes(data), mime_type)
        logger.debug(f"Allocated preview {url} ({len(data)} bytes, {mime_type}).")
        return url

    def fetch(self, url: str) -> bytes:
        """
        Returns the bytes behind a live reference.

        Raises:
            PreviewError: If the reference is unknown or has been revoked.
        """
        with self.lock:
            entry = self._entries.get(url)
            if entry is None:
                raise PreviewError(f"Preview reference {url} is not live (unknown or already revoked).")
            return entry[0]

    def mime_type(self, url: str) -> str:
        with self.lock:
            entry = self._entries.get(url)
            if entry is None:
                raise PreviewError(f"Preview reference {url} is not live.")
            return entry[1]

    def revoke(self, url: str) -> None:
        """
        Releases a reference. Revoking twice is a caller bug and raises.

        Only live references are tracked, so a revoked one is indistinguishable
        from one that was never allocated.

        Raises:
            PreviewError: If the reference is not live.
        """
        with self.lock:
            if self._entries.pop(url, None) is None:
                raise PreviewError(f"Preview reference {url} is not live (unknown or already revoked).")
            self.revoked_count += 1
        logger.debug(f"Revoked preview {url}.")

    def revoke_all(self, urls) -> int:
        """Revokes every reference in `urls` and returns how many were released."""
        count = 0
        for url in urls:
            self.revoke(url)
            count += 1
        return count

    def is_live(self, url: str) -> bool:
        with self.lock:
            return url in self._entries

    def live_count(self) -> int:
        """Number of references allocated but not yet revoked."""
        with self.lock:
            return len(self._entries)
