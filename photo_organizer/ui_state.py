# photo_organizer/ui_state.py
"""
Session state management for the Streamlit UI.

All organizer state lives behind one explicit status value and is changed only
through the named transitions on UISessionState: select_photos, organize and
reset (plus folder selection while organized). The backing mapping is
st.session_state in the app and a plain dict in tests.
"""
from __future__ import annotations
from typing import Any, Callable, Dict, List, MutableMapping, Optional, Sequence
import streamlit as st
import logging

from photo_organizer.exceptions import InvalidTransitionError, OrganizeError
from photo_organizer.intake import select_photos as intake_photos
from photo_organizer.models import CoverageReport, Folder, OrganizerStatus, Photo, folder_at
from photo_organizer.previews import PreviewStore
from photo_organizer.vlm import check_coverage

logger = logging.getLogger(__name__)

Organizer = Callable[[Sequence[Photo]], List[Folder]]

NO_PHOTOS_MESSAGE = "Please upload some photos first."
UNKNOWN_ERROR_MESSAGE = "An unknown error occurred."


class UISessionState:
    """
    Centralized state machine for one user's organizer session.

    Statuses: 'empty' -> 'ready' -> 'organizing' -> 'organized' | 'failed'.
    reset() returns to 'empty' from anywhere except 'organizing'. The session
    exclusively owns the photos' preview references and revokes each of them
    exactly once, when the photo set is replaced or reset.
    """

    def __init__(self, organizer: Organizer, store: Optional[MutableMapping[str, Any]] = None,
                 previews: Optional[PreviewStore] = None):
        self._store = st.session_state if store is None else store
        self._organizer = organizer
        self._init_defaults(previews)

    def _init_defaults(self, previews: Optional[PreviewStore]) -> None:
        """Set default values for all session state variables."""
        self._store.setdefault("status", "empty")
        self._store.setdefault("photos", [])
        self._store.setdefault("folders", None)
        self._store.setdefault("error", None)
        self._store.setdefault("selected_folder", None)
        if previews is not None:
            self._store["previews"] = previews
        else:
            self._store.setdefault("previews", PreviewStore())

    # --- Read-only Properties ---

    @property
    def status(self) -> OrganizerStatus:
        return self._store["status"]

    @property
    def photos(self) -> List[Photo]:
        return self._store["photos"]

    @property
    def folders(self) -> Optional[List[Folder]]:
        """The last organize result, exactly as the organizer returned it."""
        return self._store["folders"]

    @property
    def error(self) -> Optional[str]:
        return self._store["error"]

    @property
    def previews(self) -> PreviewStore:
        return self._store["previews"]

    @property
    def is_organizing(self) -> bool:
        return self.status == "organizing"

    @property
    def selected_folder(self) -> Optional[Folder]:
        """Get the folder currently opened in the folder view."""
        return folder_at(self.folders, self._store["selected_folder"])

    # --- State Transition Methods ---

    def select_photos(self, raw_files: Optional[Sequence[Any]]) -> List[Photo]:
        """
        Replace the photo set with the images among `raw_files`.

        The previous photos' previews are revoked once the new set has been
        read, and any prior result, error and folder selection are cleared. If
        reading the uploads fails, the session is left exactly as it was.
        """
        self._require_idle("select photos")
        photos = intake_photos(raw_files, self.previews)
        self._release_photos()
        self._store["photos"] = photos
        self._clear_outcome()
        self._store["status"] = "ready" if photos else "empty"
        logger.debug(f"Selected {len(photos)} photo(s); status is now '{self.status}'.")
        return photos

    def organize(self) -> bool:
        """
        Run the organizer on the current photos.

        With no photos this only records a validation message. Returns True if
        the session ended up 'organized'.
        """
        if self.is_organizing:
            raise InvalidTransitionError("An organize request is already in progress.")
        if not self.photos:
            logger.info("Organize requested without photos.")
            self._store["error"] = NO_PHOTOS_MESSAGE
            return False

        self._store["status"] = "organizing"
        self._clear_outcome()
        try:
            folders = self._organizer(self.photos)
        except OrganizeError as e:
            self._fail(str(e) or UNKNOWN_ERROR_MESSAGE)
        except Exception:
            logger.error("Organizer raised an unexpected error.", exc_info=True)
            self._fail(UNKNOWN_ERROR_MESSAGE)
        else:
            self._store["folders"] = folders
            self._store["status"] = "organized"
            logger.info(f"Organized {len(self.photos)} photo(s) into {len(folders)} folder(s).")
            self._log_coverage()
        finally:
            if self.is_organizing:
                # Interrupted (e.g. by a Streamlit rerun) before an outcome was recorded.
                self._store["status"] = "ready"
        return self.status == "organized"

    def reset(self) -> None:
        """Drop photos, result and error, revoking every preview. Safe to call repeatedly."""
        self._require_idle("reset")
        released = self._release_photos()
        self._store["photos"] = []
        self._clear_outcome()
        self._store["status"] = "empty"
        logger.debug(f"Session reset; released {released} preview(s).")

    # --- Folder View Methods ---

    def open_folder(self, index: int) -> None:
        """Open one of the result folders in the folder view."""
        if self.status != "organized" or folder_at(self.folders, index) is None:
            raise InvalidTransitionError(f"Cannot open folder {index} in status '{self.status}'.")
        self._store["selected_folder"] = index

    def close_folder(self) -> None:
        self._store["selected_folder"] = None

    def photos_in(self, folder: Folder) -> List[Photo]:
        """The folder's photos for display, skipping indices that point nowhere."""
        count = len(self.photos)
        return [self.photos[i] for i in folder.photo_indices
                if isinstance(i, int) and not isinstance(i, bool) and 0 <= i < count]

    def coverage(self) -> Optional[CoverageReport]:
        """Check the current result against the photo set, or None without a result."""
        if self.folders is None:
            return None
        return check_coverage(self.folders, len(self.photos))

    # --- Internal Helpers ---

    def _require_idle(self, action: str) -> None:
        if self.is_organizing:
            raise InvalidTransitionError(f"Cannot {action} while photos are being organized.")

    def _release_photos(self) -> int:
        return self.previews.revoke_all(photo.preview_url for photo in self.photos)

    def _clear_outcome(self) -> None:
        self._store["folders"] = None
        self._store["error"] = None
        self._store["selected_folder"] = None

    def _fail(self, message: str) -> None:
        self._store["folders"] = None
        self._store["error"] = message
        self._store["status"] = "failed"
        logger.warning(f"Organize failed: {message}")

    def _log_coverage(self) -> None:
        report = self.coverage()
        if report is not None and not report.is_complete:
            logger.warning(
                f"Result does not cover the photos exactly once: out of range {report.out_of_range}, "
                f"duplicated {report.duplicated}, missing {report.missing}."
            )

    # --- Utility Methods ---

    def get_session_info(self) -> Dict[str, Any]:
        """Get a summary of current session state for debugging."""
        return {
            "status": self.status,
            "photo_count": len(self.photos),
            "folder_count": len(self.folders) if self.folders is not None else None,
            "error": self.error,
            "selected_folder": self._store["selected_folder"],
            "live_previews": self.previews.live_count(),
        }
