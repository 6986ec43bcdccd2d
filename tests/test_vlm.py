"""
Unit tests for the organizer client: encoding, response validation and the
organize request as a whole, with the model call stubbed out.
"""

import base64
import json
from io import BytesIO

import pytest
from PIL import Image

from photo_organizer import vlm
from photo_organizer.exceptions import (
    ClassifierConnectionError,
    MalformedResponseError,
    OrganizeError,
)
from photo_organizer.intake import select_photos
from photo_organizer.models import Folder
from photo_organizer.vlm import (
    ORGANIZE_ERROR_MESSAGE,
    ORGANIZE_INSTRUCTION,
    check_coverage,
    encode_photo,
    encode_photos,
    organize_photos,
    parse_folders,
)
from tests.helpers import FakeUpload, make_png

CONFIG = {"vlm": {"encode_workers": 3}}

TWO_FOLDERS = json.dumps([
    {"folderName": "Beach", "description": "Sand and sea.", "photoIndices": [0, 2, 4]},
    {"folderName": "City", "description": "Streets at night.", "photoIndices": [1, 3, 5]},
])


class RecordingClassifier:
    """Stub for the model call that records what it was sent."""

    def __init__(self, reply=TWO_FOLDERS, error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    def __call__(self, instruction, images):
        self.calls.append((instruction, list(images)))
        if self.error is not None:
            raise self.error
        return self.reply


class TestParseFolders:
    """Tests for validating the structured model payload."""

    def test_valid_payload(self):
        folders = parse_folders(TWO_FOLDERS)

        assert folders == [
            Folder("Beach", "Sand and sea.", [0, 2, 4]),
            Folder("City", "Streets at night.", [1, 3, 5]),
        ]

    def test_folders_keep_wire_fields(self):
        folders = parse_folders(TWO_FOLDERS)

        assert [f.to_dict() for f in folders] == json.loads(TWO_FOLDERS)

    def test_surrounding_whitespace_is_ignored(self):
        assert len(parse_folders("\n  " + TWO_FOLDERS + "  \n")) == 2

    def test_empty_array_is_valid(self):
        assert parse_folders("[]") == []

    @pytest.mark.parametrize("payload", [
        "not json at all",
        '{"folderName": "x", "photoIndices": []}',
        '[{"description": "no name", "photoIndices": [0]}]',
        '[{"folderName": 7, "photoIndices": [0]}]',
        '[{"folderName": "x", "photoIndices": "0,1"}]',
        '["just a string"]',
    ])
    def test_malformed_payloads(self, payload):
        with pytest.raises(MalformedResponseError):
            parse_folders(payload)

    def test_missing_description_becomes_empty(self):
        folders = parse_folders('[{"folderName": "x", "photoIndices": [0]}]')

        assert folders[0].description == ""

    def test_indices_are_not_range_checked(self):
        folders = parse_folders('[{"folderName": "x", "description": "", "photoIndices": [99, -1]}]')

        assert folders[0].photo_indices == [99, -1]


class TestEncoding:
    """Tests for turning photos into inline image parts."""

    def test_encode_photo_is_base64_of_raw_bytes(self, photos):
        encoded = encode_photo(photos[0])

        assert encoded.mime_type == "image/jpeg"
        assert base64.b64decode(encoded.data) == photos[0].data

    def test_encode_photos_preserves_order(self, photos):
        encoded = encode_photos(photos, CONFIG)

        assert [base64.b64decode(e.data) for e in encoded] == [p.data for p in photos]

    def test_large_image_is_downscaled_to_jpeg(self, previews):
        photo = select_photos([FakeUpload("big.png", "image/png", make_png(size=(400, 200)))], previews)[0]

        encoded = encode_photo(photo, max_image_edge=100)

        image = Image.open(BytesIO(base64.b64decode(encoded.data)))
        assert encoded.mime_type == "image/jpeg"
        assert max(image.size) == 100

    def test_small_image_is_sent_untouched(self, previews, png_bytes):
        photo = select_photos([FakeUpload("small.png", "image/png", png_bytes)], previews)[0]

        encoded = encode_photo(photo, max_image_edge=100)

        assert encoded.mime_type == "image/png"
        assert base64.b64decode(encoded.data) == png_bytes


class TestOrganizePhotos:
    """Tests for the full organize request with a stubbed classifier."""

    def test_success_returns_validated_folders(self, photos):
        classify = RecordingClassifier()

        folders = organize_photos(photos, classify, CONFIG)

        assert [f.name for f in folders] == ["Beach", "City"]
        assert folders[0].photo_indices == [0, 2, 4]

    def test_exactly_one_call_with_instruction_and_all_images(self, photos):
        classify = RecordingClassifier()

        organize_photos(photos, classify, CONFIG)

        assert len(classify.calls) == 1
        instruction, images = classify.calls[0]
        assert instruction == ORGANIZE_INSTRUCTION
        assert len(images) == len(photos)

    def test_service_failure_becomes_organize_error(self, photos):
        classify = RecordingClassifier(error=ClassifierConnectionError("timeout"))

        with pytest.raises(OrganizeError, match="Failed to organize photos") as exc_info:
            organize_photos(photos, classify, CONFIG)

        assert isinstance(exc_info.value.__cause__, ClassifierConnectionError)
        assert str(exc_info.value) == ORGANIZE_ERROR_MESSAGE

    def test_malformed_response_becomes_organize_error(self, photos):
        classify = RecordingClassifier(reply='{"folders": []}')

        with pytest.raises(OrganizeError) as exc_info:
            organize_photos(photos, classify, CONFIG)

        assert isinstance(exc_info.value.__cause__, MalformedResponseError)

    def test_encoding_failure_aborts_before_request(self, photos, monkeypatch):
        real_encode = vlm.encode_photo

        def encode_or_fail(photo, max_image_edge=None):
            if photo.name == "photo3.jpg":
                raise MemoryError("out of memory")
            return real_encode(photo, max_image_edge)

        monkeypatch.setattr(vlm, "encode_photo", encode_or_fail)
        classify = RecordingClassifier()

        with pytest.raises(OrganizeError) as exc_info:
            organize_photos(photos, classify, CONFIG)

        assert isinstance(exc_info.value.__cause__, MemoryError)
        assert classify.calls == []

    def test_unreadable_format_is_sent_when_downscaling(self, previews):
        heic = select_photos([FakeUpload("IMG_0001.heic", "image/heic", b"\x00\x00\x00\x18ftypheic")], previews)
        classify = RecordingClassifier(reply="[]")

        assert organize_photos(heic, classify, {"vlm": {"max_image_edge": 1536}}) == []

        _, images = classify.calls[0]
        assert images[0].mime_type == "image/heic"
        assert base64.b64decode(images[0].data) == heic[0].data

    def test_oversized_request_is_rejected_before_request(self, photos):
        classify = RecordingClassifier()

        with pytest.raises(OrganizeError):
            organize_photos(photos, classify, {"vlm": {"max_request_bytes": 10}})

        assert classify.calls == []


class TestCheckCoverage:
    """Tests for the coverage report on returned folders."""

    def test_complete_coverage(self):
        report = check_coverage(parse_folders(TWO_FOLDERS), 6)

        assert report.is_complete

    def test_reports_out_of_range_duplicates_and_missing(self):
        folders = [
            Folder("a", "", [0, 1, 7]),
            Folder("b", "", [1, -2, "3"]),
        ]

        report = check_coverage(folders, 4)

        assert not report.is_complete
        assert report.out_of_range == [7, -2, "3"]
        assert report.duplicated == [1]
        assert report.missing == [2, 3]
