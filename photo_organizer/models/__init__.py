"""
Models package for the AI Photo Organizer.

This package contains all data model definitions and DTOs for type-safe
data handling throughout the application.
"""

from .dto import (
    # Core DTOs
    Photo,
    EncodedImage,
    Folder,
    CoverageReport,
    ExportArchive,

    # Type aliases
    OrganizerStatus,
    PreviewUrl,
    PhotoIndex,

    # Utility functions
    folder_at,
)

__all__ = [
    # Core DTOs
    'Photo',
    'EncodedImage',
    'Folder',
    'CoverageReport',
    'ExportArchive',

    # Type aliases
    'OrganizerStatus',
    'PreviewUrl',
    'PhotoIndex',

    # Utility functions
    'folder_at',
]
