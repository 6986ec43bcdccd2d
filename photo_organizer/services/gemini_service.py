# photo_organizer/services/gemini_service.py
"""
Provides the service for the one outbound call this application makes: a
Gemini `generateContent` request carrying the instruction, the inline images
and the response schema.

The service only moves bytes over HTTP and extracts the structured text from
the reply. Decoding and validating that text is the organizer client's job.
"""
import logging
from typing import Any, Dict, Optional, Sequence

import requests

from .config_service import config
from ..exceptions import ClassifierConnectionError, MalformedResponseError
from ..models import EncodedImage
from ..vlm import RESPONSE_SCHEMA

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_MODEL = "gemini-2.5-flash"


class GeminiService:
    def __init__(self, api_key: Optional[str] = None, settings: Optional[Dict[str, Any]] = None,
                 session: Optional[requests.Session] = None):
        # Explicit arguments win over the application configuration.
        cfg_vlm = settings if settings is not None else config.get('vlm', {})
        self.api_key = api_key if api_key is not None else config.gemini_api_key
        self.model = cfg_vlm.get('model', DEFAULT_MODEL)
        self.api_base = cfg_vlm.get('api_base', DEFAULT_API_BASE).rstrip('/')
        self.timeout = cfg_vlm.get('api_timeout_seconds', 120)
        self.session = session or requests.Session()

    @property
    def endpoint(self) -> str:
        return f"{self.api_base}/models/{self.model}:generateContent"

    def build_payload(self, instruction: str, images: Sequence[EncodedImage]) -> Dict[str, Any]:
        """Builds the request body: one text part followed by one inline part per image."""
        return {
            "contents": [{
                "role": "user",
                "parts": [{"text": instruction}] + [image.to_part() for image in images],
            }],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": RESPONSE_SCHEMA,
            },
        }

    def generate(self, instruction: str, images: Sequence[EncodedImage]) -> str:
        """
        Sends the instruction and images to the model and returns the raw JSON text.

        Args:
            instruction: The fixed natural-language grouping instruction.
            images: The encoded photos, in submission order.

        Returns:
            The structured payload produced by the model, still undecoded.

        Raises:
            ClassifierConnectionError: For a missing API key, network or HTTP failures.
            MalformedResponseError: If the reply carries no usable text.
        """
        if not self.api_key:
            logger.error("Gemini API key is not configured. Set GEMINI_API_KEY in the environment or .env file.")
            raise ClassifierConnectionError("Gemini API key is missing.")

        headers = {"x-goog-api-key": self.api_key, "Content-Type": "application/json"}
        payload = self.build_payload(instruction, images)
        logger.debug(f"POSTing {len(images)} image(s) to {self.endpoint}")
        try:
            response = self.session.post(self.endpoint, json=payload, headers=headers, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            # Never log the request itself: it carries the API key header.
            logger.warning(f"Gemini request failed: {e}")
            raise ClassifierConnectionError(f"Gemini request failed: {e}") from e

        try:
            response_data = response.json()
        except requests.exceptions.JSONDecodeError as e:
            raise MalformedResponseError("Gemini returned a non-JSON HTTP body.") from e

        return self.extract_text(response_data)

    @staticmethod
    def extract_text(response_data: Dict[str, Any]) -> str:
        """
        Pulls the generated text out of a `generateContent` reply.

        Raises:
            MalformedResponseError: If the prompt was blocked or no candidate has text.
        """
        block_reason = (response_data.get('promptFeedback') or {}).get('blockReason')
        if block_reason:
            raise MalformedResponseError(f"Gemini blocked the request: {block_reason}")

        candidates = response_data.get('candidates') or []
        if not candidates:
            raise MalformedResponseError("Gemini response contained no candidates.")

        parts = (candidates[0].get('content') or {}).get('parts') or []
        text = "".join(part.get('text', '') for part in parts if isinstance(part, dict))
        if not text.strip():
            finish_reason = candidates[0].get('finishReason', 'unknown')
            raise MalformedResponseError(f"Gemini response contained no text (finish reason: {finish_reason}).")
        return text
