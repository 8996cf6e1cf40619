from pathlib import Path
from typing import BinaryIO, Union
from io import BytesIO
import os
import logging
import numpy as np
from dotenv import load_dotenv
from PIL import Image as PILImage, UnidentifiedImageError

from ..exceptions import CorruptImageError, InputValidationError, PayloadTooLargeError, UnsupportedMediaError
from ..models.raster import Raster

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

# decoded size limit, checked from the header before any pixel is read
MAX_IMAGE_PIXELS = int(os.getenv("MAX_IMAGE_PIXELS", "50000000"))

# everything Pillow raises for bytes it cannot turn into pixels
DECODE_ERRORS = (UnidentifiedImageError, OSError, EOFError, SyntaxError, ValueError)

ACCEPTED_MIME_TYPES = {
    "image/png",
    "image/jpeg",
    "image/jpg",
    "image/webp",
}

# output format → (PIL format, content type)
OUTPUT_FORMATS = {
    "png": ("PNG", "image/png"),
    "jpeg": ("JPEG", "image/jpeg"),
    "jpg": ("JPEG", "image/jpeg"),
}


class ImageRepository:
    """
    Handles byte / file I/O for Raster entities.
    Everything decoded here comes out as RGBA uint8.
    """

    @staticmethod
    def create_raster(pixels: np.ndarray) -> Raster:
        return Raster(pixels=pixels)

    @staticmethod
    def retrieve_raster_dimensions(raster: Raster):
        return raster.pixels.shape[:2]

    @staticmethod
    def _from_pil(pil_img: PILImage.Image) -> Raster:
        return Raster(np.asarray(pil_img.convert("RGBA"), dtype=np.uint8).copy())

    @staticmethod
    def to_pil(raster: Raster) -> PILImage.Image:
        return PILImage.fromarray(raster.pixels)

    def decode(self, data: bytes, mime_type: str) -> Raster:
        """
        Decode *data* declared as *mime_type* into a Raster.

        Raises:
            UnsupportedMediaError: mime_type is not accepted.
            CorruptImageError: the bytes cannot be decoded.
            PayloadTooLargeError: the image declares more than MAX_IMAGE_PIXELS pixels.
        """
        mime_type = (mime_type or "").lower()
        if mime_type not in ACCEPTED_MIME_TYPES:
            raise UnsupportedMediaError(f"Unsupported file type: {mime_type or 'unknown'}")
        if not data:
            raise CorruptImageError(f"Empty {mime_type} payload")
        return self._read(BytesIO(data), f"{len(data)} bytes of {mime_type}")

    def _read(self, source: Union[Path, BinaryIO], label: str) -> Raster:
        """
        Open, check the declared size, then decode.

        Raises:
            PayloadTooLargeError: declared width x height is above MAX_IMAGE_PIXELS.
            CorruptImageError: Pillow cannot decode the data.
        """
        try:
            with PILImage.open(source) as pil_img:
                pixels = pil_img.width * pil_img.height
                if pixels > MAX_IMAGE_PIXELS:
                    raise PayloadTooLargeError(
                        f"Image {pil_img.width}x{pil_img.height} ({pixels} pixels) exceeds "
                        f"limit of {MAX_IMAGE_PIXELS} pixels"
                    )
                pil_img.load()
                return self._from_pil(pil_img)
        except PILImage.DecompressionBombError as err:
            logger.warning(f"Refusing to decode {label}: {err}")
            raise PayloadTooLargeError(f"Image too large to decode: {err}") from err
        except DECODE_ERRORS as err:
            logger.warning(f"Could not decode {label}: {err}")
            raise CorruptImageError(f"Corrupt or unreadable image ({label}): {err}") from err

    def encode(self, raster: Raster, fmt: str = "png", quality: int = 92) -> bytes:
        """
        Encode a Raster as PNG or JPEG. JPEG output drops the alpha channel.
        """
        fmt = (fmt or "").lower()
        if fmt not in OUTPUT_FORMATS:
            raise InputValidationError(f"Unsupported output format: {fmt}")
        if not 1 <= int(quality) <= 100:
            raise InputValidationError(f"JPEG quality must be in [1, 100], got {quality}")

        pil_format, _ = OUTPUT_FORMATS[fmt]
        pil_img = self.to_pil(raster)
        buffer = BytesIO()
        if pil_format == "JPEG":
            pil_img.convert("RGB").save(buffer, format="JPEG", quality=int(quality))
        else:
            pil_img.save(buffer, format="PNG")
        return buffer.getvalue()

    @staticmethod
    def content_type(fmt: str) -> str:
        return OUTPUT_FORMATS[fmt.lower()][1]

    def load(self, path: Union[str, Path]) -> Raster:
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"Image not found or unreadable: {path}")
        return self._read(path, str(path))

    def save(self, raster: Raster, path: Union[str, Path], quality: int = 92) -> Path:
        """Save by file extension; .jpg/.jpeg become JPEG, anything else PNG."""
        path = Path(path)
        fmt = "jpeg" if path.suffix.lower() in (".jpg", ".jpeg") else "png"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self.encode(raster, fmt, quality))
        return path
