# photo_organizer/models/dto.py
"""
Data Transfer Objects (DTOs) for type-safe data handling throughout the application.

These dataclasses carry photos, encoded images and organizer results between
the intake, organizer, export and UI layers instead of loose dictionaries.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any, Literal
import logging

logger = logging.getLogger(__name__)

# Type aliases for better readability
OrganizerStatus = Literal['empty', 'ready', 'organizing', 'organized', 'failed']
PreviewUrl = str
PhotoIndex = int

@dataclass(frozen=True)
class Photo:
    """An uploaded image together with its displayable preview reference."""
    name: str
    mime_type: str
    data: bytes = field(repr=False)
    preview_url: PreviewUrl

@dataclass(frozen=True)
class EncodedImage:
    """The transport-safe form of one photo: base64 text plus its content type."""
    mime_type: str
    data: str = field(repr=False)

    def to_part(self) -> Dict[str, Any]:
        """Convert to a Gemini inline data part."""
        return {"inline_data": {"mime_type": self.mime_type, "data": self.data}}

@dataclass
class Folder:
    """A named, described group of photo indices returned by the model."""
    name: str
    description: str = ""
    photo_indices: List[PhotoIndex] = field(default_factory=list)

    @property
    def photo_count(self) -> int:
        """Get the number of photos assigned to this folder."""
        return len(self.photo_indices)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the wire format used by the model response."""
        return {
            "folderName": self.name,
            "description": self.description,
            "photoIndices": list(self.photo_indices),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Folder:
        """
        Create a Folder from one element of a validated model response.

        The caller is responsible for having checked that 'folderName' is a
        string and 'photoIndices' is a list. A missing or non-string
        description is normalized to an empty string.
        """
        description = data.get("description")
        if not isinstance(description, str):
            if description is not None:
                logger.warning(f"Ignoring non-string description for folder '{data['folderName']}'.")
            description = ""
        return cls(
            name=data["folderName"],
            description=description,
            photo_indices=list(data["photoIndices"]),
        )

@dataclass
class CoverageReport:
    """How well a set of folders covers the submitted photo list."""
    photo_count: int
    out_of_range: List[Any] = field(default_factory=list)
    duplicated: List[PhotoIndex] = field(default_factory=list)
    missing: List[PhotoIndex] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        """Check that every photo appears in exactly one folder and nothing else does."""
        return not (self.out_of_range or self.duplicated or self.missing)

@dataclass(frozen=True)
class ExportArchive:
    """A zip archive generated for one folder, ready to be offered as a download."""
    filename: str
    data: bytes = field(repr=False)
    entry_names: List[str] = field(default_factory=list)
    mime_type: str = "application/zip"

    @property
    def entry_count(self) -> int:
        """Get the number of entries written to the archive."""
        return len(self.entry_names)

# Utility functions for conversion
def folder_at(folders: Optional[List[Folder]], index: Optional[int]) -> Optional[Folder]:
    """Return the folder at the given position, or None if there is none."""
    if folders is None or index is None:
        return None
    if 0 <= index < len(folders):
        return folders[index]
    return None
