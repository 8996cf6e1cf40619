from __future__ import annotations
from dataclasses import dataclass
from .raster import Raster


@dataclass
class MaskPair:
    """
    Linked masks: the source region of pair *index* is rebuilt from the
    reference region of the same pair, never from another pair.
    """
    index: int
    source_mask: Raster      # region on the base image to replace
    reference_mask: Raster   # region on the reference image to take content from
