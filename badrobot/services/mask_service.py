# services/mask_service.py
"""
Geometry and edge softening for painted region masks.

• A mask pixel is *active* (editable) when max(R, G, B) > ACTIVE_THRESHOLD,
  white-dominant = active, black-dominant = locked.
• extract_bbox → tight box around every active pixel (None if there is none).
• feather      → Gaussian-softened coverage used as compositing alpha.
"""
from __future__ import annotations
from typing import Optional
import cv2
import numpy as np

from ..models.bounding_box import BoundingBox
from ..models.raster import Raster

ACTIVE_THRESHOLD = 128  # tolerates anti-aliased brush edges
FEATHER_RADIUS = 4


class MaskService:
    """
    Business-level helpers for masks. Never mutates the masks it is given.
    """

    @staticmethod
    def active_pixels(mask: Raster) -> np.ndarray:
        """Boolean (H, W) map of active pixels."""
        return mask.pixels[:, :, :3].max(axis=2) > ACTIVE_THRESHOLD

    def extract_bbox(self, mask: Raster) -> Optional[BoundingBox]:
        """
        Full scan of the mask; masks can be irregular so every pixel counts.

        Returns:
            BoundingBox enclosing all active pixels, or None for an all-locked mask.
        """
        active = self.active_pixels(mask)
        rows = np.flatnonzero(active.any(axis=1))
        if rows.size == 0:
            return None
        cols = np.flatnonzero(active.any(axis=0))

        min_y, max_y = int(rows[0]), int(rows[-1])
        min_x, max_x = int(cols[0]), int(cols[-1])
        return BoundingBox(x=min_x, y=min_y, w=max_x - min_x + 1, h=max_y - min_y + 1)

    @staticmethod
    def clamp_bbox(box: BoundingBox, width: int, height: int) -> BoundingBox:
        """
        Force *box* inside [0, width) x [0, height) with w, h >= 1.
        """
        x = min(max(box.x, 0), width - 1)
        y = min(max(box.y, 0), height - 1)
        w = min(max(box.w, 1), width - x)
        h = min(max(box.h, 1), height - y)
        return BoundingBox(x=x, y=y, w=w, h=h)

    def feather(self, mask: Raster, radius: int = FEATHER_RADIUS) -> Raster:
        """
        Binarise, then blur with sigma = radius → smooth alpha ramp.

        Returns a new Raster whose four channels all hold the coverage (0‑255).
        """
        coverage = self.active_pixels(mask).astype("float32")
        if radius > 0:
            coverage = cv2.GaussianBlur(coverage, (0, 0), sigmaX=radius, sigmaY=radius)

        alpha_u8 = np.rint(np.clip(coverage, 0.0, 1.0) * 255.0).astype(np.uint8)
        return Raster(np.repeat(alpha_u8[:, :, np.newaxis], 4, axis=2))
