"""
Image decoding and preview references for uploaded files.
"""

import base64
import io
from PIL import Image, UnidentifiedImageError


class ImageDecodeError(ValueError):
    """Uploaded bytes are not a decodable image."""
    pass


def read_image(data: bytes) -> Image.Image:
    """Decode uploaded bytes into a fully loaded PIL image."""
    if not data:
        raise ImageDecodeError("Empty image upload")
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError) as e:
        raise ImageDecodeError(f"Could not decode image: {e}") from e
    return image


def to_data_url(data: bytes, image: Image.Image = None) -> str:
    """Build a data URL preview reference for the uploaded bytes."""
    mime = "application/octet-stream"
    if image is not None and image.format:
        mime = Image.MIME.get(image.format, mime)
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{mime};base64,{encoded}"
