from typing import Tuple
import logging
import cv2
import numpy as np

from ..models.bounding_box import BoundingBox
from ..models.raster import Raster
from ..repositories.image_repository import ImageRepository

logger = logging.getLogger(__name__)


class ImageService:
    """Resampling and compositing on Raster objects. No codec logic here."""

    def __init__(self):
        self.image_repository = ImageRepository()

    def create_raster(self, pixels: np.ndarray) -> Raster:
        return self.image_repository.create_raster(pixels)

    def get_raster_dimensions(self, raster: Raster) -> Tuple[int, int]:
        return self.image_repository.retrieve_raster_dimensions(raster)

    def crop_pixels(self, raster: Raster, box: BoundingBox) -> np.ndarray:
        img_h, img_w = self.get_raster_dimensions(raster)
        if box.w < 1 or box.h < 1 or box.x < 0 or box.y < 0 or box.right > img_w or box.bottom > img_h:
            raise ValueError(
                f"Invalid crop box {box} for {img_w}x{img_h} raster"
            )
        return raster.pixels[box.y:box.bottom, box.x:box.right].copy()

    def resize(self, raster: Raster, width: int, height: int) -> Raster:
        """
        Bilinear resample to exactly width x height. Same size → plain copy.
        """
        if width < 1 or height < 1:
            raise ValueError(f"Target size must be positive, got {width}x{height}")
        if raster.size == (width, height):
            return raster.copy()
        resized = cv2.resize(raster.pixels, (width, height), interpolation=cv2.INTER_LINEAR)
        return self.create_raster(resized)

    def crop_and_resize(self, src: Raster, box: BoundingBox, target_w: int, target_h: int) -> Raster:
        """
        Content of *src* restricted to *box*, resampled to target_w x target_h.
        """
        patch = self.create_raster(self.crop_pixels(src, box))
        return self.resize(patch, target_w, target_h)

    def fit_contain(self, src: Raster, width: int, height: int) -> Raster:
        """
        Scale *src* to fit inside width x height without distortion, centered,
        transparent padding around it.
        """
        if src.size == (width, height):
            return src.copy()

        scale = min(width / src.width, height / src.height)
        fit_w = min(width, max(1, round(src.width * scale)))
        fit_h = min(height, max(1, round(src.height * scale)))
        scaled = self.resize(src, fit_w, fit_h)

        logger.debug(f"Contain-fit {src.width}x{src.height} → {fit_w}x{fit_h} in {width}x{height}")

        canvas = Raster.blank(width, height)
        left = (width - fit_w) // 2
        top = (height - fit_h) // 2
        canvas.pixels[top:top + fit_h, left:left + fit_w] = scaled.pixels
        return canvas

    @staticmethod
    def composite(dest: Raster, overlay: Raster, offset_x: int, offset_y: int) -> None:
        """
        Alpha-composite *overlay* over *dest* in place ("over" operator,
        straight alpha). Overlay pixels outside *dest* are dropped; *dest*
        keeps its size.
        """
        dst_h, dst_w = dest.pixels.shape[:2]
        ov_h, ov_w = overlay.pixels.shape[:2]

        x0, y0 = max(offset_x, 0), max(offset_y, 0)
        x1, y1 = min(offset_x + ov_w, dst_w), min(offset_y + ov_h, dst_h)
        if x0 >= x1 or y0 >= y1:
            return

        ov = overlay.pixels[y0 - offset_y:y1 - offset_y,
                            x0 - offset_x:x1 - offset_x].astype("float32") / 255.0
        dst = dest.pixels[y0:y1, x0:x1].astype("float32") / 255.0

        a_ov = ov[:, :, 3:4]
        a_dst = dst[:, :, 3:4]
        a_out = a_ov + a_dst * (1.0 - a_ov)

        rgb = ov[:, :, :3] * a_ov + dst[:, :, :3] * a_dst * (1.0 - a_ov)
        rgb = np.divide(rgb, a_out, out=np.zeros_like(rgb), where=a_out > 0)

        out = np.concatenate([rgb, a_out], axis=2)
        dest.pixels[y0:y1, x0:x1] = np.rint(np.clip(out, 0.0, 1.0) * 255.0).astype(np.uint8)
