from __future__ import annotations
from dataclasses import dataclass, field
from typing import List
from .raster import Raster
from .mask_pair import MaskPair


@dataclass
class UploadedFile:
    """
    One uploaded part as handed over by the transport layer, still encoded.
    """
    field_name: str
    data: bytes
    mime_type: str


@dataclass
class RegenerationRequest:
    """
    Decoded inputs of one /process call plus the delivery knobs.
    """
    base: Raster
    reference: Raster
    pairs: List[MaskPair] = field(default_factory=list)
    mode: str = "auto"            # passthrough | auto | style
    return_format: str = "png"    # png | jpeg
    quality: int = 92             # JPEG quality, [40, 100]
