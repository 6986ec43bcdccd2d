"""
Test doubles and sample data shared across test modules.
"""

from io import BytesIO

from PIL import Image


class FakeUpload:
    """Stands in for Streamlit's UploadedFile: a name, a content type and its bytes."""

    def __init__(self, name, type, data=b"fake image bytes"):
        self.name = name
        self.type = type
        self._data = data

    def getvalue(self):
        return self._data


def make_png(size=(8, 8), color=(200, 30, 30)):
    buffer = BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


class BrokenUpload(FakeUpload):
    """An image upload whose bytes cannot be read."""

    def getvalue(self):
        raise OSError("upload stream closed")
