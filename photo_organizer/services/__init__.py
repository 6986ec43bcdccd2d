# photo_organizer/services/__init__.py
"""
Initializes the services package and provides easy access to the singleton
service instances.

This pattern allows other parts of the application to import services with a
clean syntax, like so:
from photo_organizer.services import config, gemini_service
"""
# config_service must come first: it configures logging for everything else.
from .config_service import config
from .gemini_service import GeminiService

gemini_service = GeminiService()

__all__ = [
    "config",
    "gemini_service",
    "GeminiService",
]
