"""
Shared fixtures: small in-memory PNG uploads in leaf colours.
"""

import io
import pytest
from PIL import Image

GREEN = (34, 139, 34)
YELLOW = (220, 200, 40)
BROWN = (139, 69, 19)


def png_bytes(color, size=(16, 16), marker=None) -> bytes:
    """Encode a solid colour image; marker changes one pixel to make it unique."""
    image = Image.new("RGB", size, color)
    if marker is not None:
        image.putpixel((0, 0), (marker % 256, marker // 256 % 256, 0))
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def green_png():
    return png_bytes(GREEN)


@pytest.fixture
def yellow_png():
    return png_bytes(YELLOW)


@pytest.fixture
def brown_png():
    return png_bytes(BROWN)
