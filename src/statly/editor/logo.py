"""
Logo image normalization.

Uploaded logos are decoded with Pillow, flattened to RGBA, shrunk to fit
the widget header and stored as PNG.
"""

import io
import logging

from PIL import Image, UnidentifiedImageError

from ..utils.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Longest side of a stored logo, in pixels
MAX_LOGO_SIZE = 256

# Refuse uploads larger than this before decoding (5MB)
MAX_LOGO_BYTES = 5 * 1024 * 1024


def normalize_logo(data: bytes, max_size: int = MAX_LOGO_SIZE) -> bytes:
    """
    Decode an uploaded image and re-encode it as a bounded PNG.

    Args:
        data: Raw image bytes in any format Pillow can read
        max_size: Longest side of the result in pixels

    Returns:
        PNG bytes

    Raises:
        ConfigurationError: If the data is empty, too large or not an image
    """
    if not data:
        raise ConfigurationError("Logo image is empty")
    if len(data) > MAX_LOGO_BYTES:
        raise ConfigurationError(
            f"Logo image too large: {len(data)} bytes (maximum {MAX_LOGO_BYTES} bytes)"
        )

    try:
        with Image.open(io.BytesIO(data)) as image:
            image.load()
            logo = image.convert("RGBA")
    except (UnidentifiedImageError, OSError) as e:
        raise ConfigurationError(f"Logo is not a readable image: {e}")

    if max(logo.size) > max_size:
        logo.thumbnail((max_size, max_size), Image.Resampling.LANCZOS)
        logger.debug(f"Logo scaled down to {logo.size[0]}x{logo.size[1]}")

    output = io.BytesIO()
    logo.save(output, format="PNG", optimize=True)
    return output.getvalue()


def logo_dimensions(data: bytes):
    """Return (width, height) of stored logo bytes, or None if unreadable."""
    try:
        with Image.open(io.BytesIO(data)) as image:
            return image.size
    except (UnidentifiedImageError, OSError):
        return None
