# photo_organizer/vlm.py
"""
Handles the single interaction with the multimodal classification model.

This module encodes the uploaded photos, sends them to the model together with
a fixed grouping instruction and a strict response schema, and validates the
structured answer into Folder objects. The transport itself is injected as a
`classify` callable so validation can be exercised against canned responses.
"""
from __future__ import annotations

import base64
import json
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from io import BytesIO
from typing import Callable, Sequence

from PIL import Image, ImageOps, UnidentifiedImageError

from photo_organizer.exceptions import ClassifierError, MalformedResponseError, OrganizeError
from photo_organizer.models import CoverageReport, EncodedImage, Folder, Photo

logger = logging.getLogger(__name__)

# Signature of the outbound call: (instruction, encoded images) -> raw JSON text.
ClassifyFn = Callable[[str, Sequence[EncodedImage]], str]

ORGANIZE_ERROR_MESSAGE = "Failed to organize photos. The AI model could not process the request."

ORGANIZE_INSTRUCTION = """
Analyze the following images. Your task is to act as an expert photo organizer.
Group these images into logical folders based on their content, such as events, locations, subjects, or themes.
For each folder, provide a descriptive name and a brief, one-sentence description.
Return the result as a JSON array. Each object in the array should represent a folder and contain:
1. 'folderName': A short, descriptive name for the folder (e.g., "Beach Vacation 2024", "Family Portraits", "City Architecture").
2. 'description': A single sentence summarizing the content of the folder.
3. 'photoIndices': An array of numbers, where each number is the zero-based index of the photo belonging to that folder from the input list.

Ensure every photo is assigned to exactly one folder.
""".strip()

RESPONSE_SCHEMA = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "folderName": {
                "type": "STRING",
                "description": "The name of the folder.",
            },
            "description": {
                "type": "STRING",
                "description": "A brief description of the folder's contents.",
            },
            "photoIndices": {
                "type": "ARRAY",
                "items": {
                    "type": "INTEGER",
                    "description": "The index of the photo in the original list.",
                },
            },
        },
        "required": ["folderName", "description", "photoIndices"],
    },
}


def encode_photo(photo: Photo, max_image_edge: int | None = None) -> EncodedImage:
    """
    Converts one photo into base64 text paired with its content type.

    When `max_image_edge` is set, images larger than that on their longest side
    are orientation-corrected, shrunk and re-encoded as JPEG to keep the request
    small. Smaller images, and formats Pillow cannot read (e.g. HEIC without a
    plugin), are sent untouched.
    """
    data = photo.data
    mime_type = photo.mime_type
    if max_image_edge:
        try:
            data, mime_type = _downscale(photo, max_image_edge)
        except (UnidentifiedImageError, OSError) as e:
            logger.debug(f"Sending '{photo.name}' at original size; Pillow could not process it: {e}")
            data, mime_type = photo.data, photo.mime_type
    return EncodedImage(mime_type=mime_type, data=base64.b64encode(data).decode('utf-8'))


def _downscale(photo: Photo, max_image_edge: int) -> tuple[bytes, str]:
    image = Image.open(BytesIO(photo.data))
    if max(image.size) <= max_image_edge:
        return photo.data, photo.mime_type
    image = ImageOps.exif_transpose(image).convert("RGB")
    image.thumbnail((max_image_edge, max_image_edge))
    jpeg_buffer = BytesIO()
    image.save(jpeg_buffer, format="JPEG", quality=85)
    logger.debug(f"Downscaled '{photo.name}' to {image.size} for upload.")
    return jpeg_buffer.getvalue(), "image/jpeg"


def encode_photos(photos: Sequence[Photo], config: dict) -> list[EncodedImage]:
    """
    Encodes all photos concurrently and waits for every one of them.

    The output order matches the input order, because the model refers to
    photos by their position. The first failed encoding propagates.
    """
    cfg_vlm = config.get('vlm', {})
    max_image_edge = cfg_vlm.get('max_image_edge')
    workers = max(1, min(cfg_vlm.get('encode_workers', 4), len(photos) or 1))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="encode") as executor:
        return list(executor.map(lambda photo: encode_photo(photo, max_image_edge), photos))


def _validate_request_size(images: Sequence[EncodedImage], instruction: str, max_request_bytes: int | None) -> None:
    """
    Rejects requests whose inline payload would exceed the model's request limit.

    Raises:
        ClassifierError: If the encoded images plus instruction are too large.
    """
    if not max_request_bytes:
        return
    total = len(instruction) + sum(len(image.data) for image in images)
    logger.debug(f"Request size validation: {len(images)} images, ~{total} bytes of inline payload.")
    if total > max_request_bytes:
        raise ClassifierError(
            f"Request too large: ~{total} bytes exceeds the limit of {max_request_bytes} bytes. "
            f"Upload fewer or smaller photos."
        )


def parse_folders(text: str) -> list[Folder]:
    """
    Decodes and validates the model's structured payload.

    The payload must be a JSON array whose elements each carry a string
    'folderName' and an array 'photoIndices'. Indices are not range-checked
    here; see `check_coverage`.

    Raises:
        MalformedResponseError: If the text is not JSON or not of that shape.
    """
    try:
        result = json.loads(text.strip())
    except (json.JSONDecodeError, AttributeError) as e:
        raise MalformedResponseError(f"Response is not valid JSON: {e}") from e

    if not isinstance(result, list):
        raise MalformedResponseError(f"Expected a JSON array, got {type(result).__name__}.")
    for position, item in enumerate(result):
        if not isinstance(item, dict):
            raise MalformedResponseError(f"Folder {position} is not an object.")
        if not isinstance(item.get('folderName'), str) or not isinstance(item.get('photoIndices'), list):
            raise MalformedResponseError(f"Folder {position} is missing 'folderName' or 'photoIndices'. Got: {item}")

    return [Folder.from_dict(item) for item in result]


def organize_photos(photos: Sequence[Photo], classify: ClassifyFn, config: dict) -> list[Folder]:
    """
    Orchestrates one organize request: encode, call the model once, validate.

    Args:
        photos: The photos to group. Must be non-empty.
        classify: The outbound call, e.g. `GeminiService.generate`.
        config: The application's YAML configuration dictionary.

    Returns:
        The folders exactly as validated from the model response.

    Raises:
        OrganizeError: On any failure during encoding, the call or validation.
    """
    start_time = time.time()
    logger.info(f"Organizing {len(photos)} photo(s).")
    try:
        images = encode_photos(photos, config)
        _validate_request_size(images, ORGANIZE_INSTRUCTION, config.get('vlm', {}).get('max_request_bytes'))
        raw_text = classify(ORGANIZE_INSTRUCTION, images)
        folders = parse_folders(raw_text)
    except MalformedResponseError as e:
        logger.error(f"Model returned a malformed response: {e}")
        raise OrganizeError(ORGANIZE_ERROR_MESSAGE) from e
    except ClassifierError as e:
        logger.error(f"Classification request failed: {e}")
        raise OrganizeError(ORGANIZE_ERROR_MESSAGE) from e
    except Exception as e:
        # Encoding failures (unreadable images, Pillow errors) and anything unexpected.
        logger.error(f"Organizing photos failed due to unexpected error: {e}", exc_info=True)
        raise OrganizeError(ORGANIZE_ERROR_MESSAGE) from e

    logger.info(f"Model returned {len(folders)} folder(s) in {time.time() - start_time:.1f}s.")
    return folders


def check_coverage(folders: Sequence[Folder], photo_count: int) -> CoverageReport:
    """
    Reports how far a result is from assigning every photo to exactly one folder.

    Anything that is not an integer in [0, photo_count) is out of range.
    """
    report = CoverageReport(photo_count=photo_count)
    seen = set()
    for folder in folders:
        for index in folder.photo_indices:
            if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < photo_count:
                report.out_of_range.append(index)
            elif index in seen:
                report.duplicated.append(index)
            else:
                seen.add(index)
    report.missing = [index for index in range(photo_count) if index not in seen]
    return report
