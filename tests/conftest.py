"""Pytest configuration and shared fixtures.

Every raster used in the suites is synthetic: solid colors, rectangular
masks and seeded noise, built with numpy. Nothing touches the network.
"""
import sys
import struct
import zlib
import logging
from io import BytesIO
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

# Add the project root to Python path (api_server lives there)
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from badrobot.models.raster import Raster

logging.getLogger('PIL').setLevel(logging.WARNING)

GRAY = (128, 128, 128, 255)
BLUE = (0, 0, 255, 255)
BLACK = (0, 0, 0, 255)
WHITE = (255, 255, 255, 255)


@pytest.fixture
def solid():
    """Factory: width x height raster of one RGBA color."""
    def _solid(width, height, color=GRAY):
        return Raster.blank(width, height, color)
    return _solid


@pytest.fixture
def rect_mask():
    """Factory: opaque black mask with a white rectangle at (x, y) of size w x h."""
    def _rect_mask(width, height, x, y, w, h):
        mask = Raster.blank(width, height, BLACK)
        mask.pixels[y:y + h, x:x + w] = WHITE
        return mask
    return _rect_mask


@pytest.fixture
def noise():
    """Factory: seeded opaque RGB noise."""
    def _noise(width, height, seed=0):
        rng = np.random.RandomState(seed)
        pixels = rng.randint(0, 256, (height, width, 4), dtype=np.uint8)
        pixels[:, :, 3] = 255
        return Raster(pixels)
    return _noise


@pytest.fixture
def encode_png():
    """Factory: PNG bytes of a Raster, encoded with Pillow directly."""
    def _encode_png(raster):
        buffer = BytesIO()
        Image.fromarray(raster.pixels).save(buffer, format="PNG")
        return buffer.getvalue()
    return _encode_png


@pytest.fixture
def png_header():
    """Factory: PNG declaring width x height with no pixel data (IHDR, empty IDAT, IEND)."""
    def _chunk(kind, payload):
        body = kind + payload
        return struct.pack(">I", len(payload)) + body + struct.pack(">I", zlib.crc32(body) & 0xFFFFFFFF)

    def _png_header(width, height):
        ihdr = struct.pack(">IIBBBBB", width, height, 8, 6, 0, 0, 0)
        return (b"\x89PNG\r\n\x1a\n" + _chunk(b"IHDR", ihdr)
                + _chunk(b"IDAT", zlib.compress(b"")) + _chunk(b"IEND", b""))
    return _png_header
