from __future__ import annotations
from dataclasses import dataclass
import numpy as np


@dataclass
class Raster:
    """
    Simple data object: RGBA pixels.
    No codec logic outside the image repository.
    """
    pixels: np.ndarray  # Shape (H, W, 4), dtype uint8, RGBA order.

    def __post_init__(self):
        if self.pixels.ndim != 3 or self.pixels.shape[2] != 4:
            raise ValueError(f"Raster pixels must have shape (H, W, 4), got {self.pixels.shape}")
        if self.pixels.dtype != np.uint8:
            raise ValueError(f"Raster pixels must be uint8, got {self.pixels.dtype}")
        if self.pixels.shape[0] < 1 or self.pixels.shape[1] < 1:
            raise ValueError("Raster must be at least 1x1")
        if not self.pixels.flags['C_CONTIGUOUS']:
            self.pixels = np.ascontiguousarray(self.pixels)

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height

    def copy(self) -> Raster:
        return Raster(self.pixels.copy())

    @classmethod
    def blank(cls, width: int, height: int, color=(0, 0, 0, 0)) -> Raster:
        """A width x height raster filled with one RGBA color (transparent black by default)."""
        pixels = np.empty((height, width, 4), dtype=np.uint8)
        pixels[:] = color
        return cls(pixels)
