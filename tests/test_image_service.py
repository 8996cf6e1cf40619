import numpy as np
import pytest

from badrobot.models.bounding_box import BoundingBox
from badrobot.models.raster import Raster
from badrobot.services.image_service import ImageService


@pytest.fixture
def image_service():
    return ImageService()


def test_raster_rejects_wrong_shape():
    with pytest.raises(ValueError):
        Raster(np.zeros((4, 4, 3), dtype=np.uint8))
    with pytest.raises(ValueError):
        Raster(np.zeros((4, 4, 4), dtype=np.float32))


def test_crop_and_resize_hits_target_size(image_service, noise):
    src = noise(80, 60)
    patch = image_service.crop_and_resize(src, BoundingBox(10, 5, 30, 20), 45, 12)
    assert patch.size == (45, 12)


def test_crop_and_resize_keeps_to_the_box(image_service, solid):
    src = solid(50, 50, (10, 10, 10, 255))
    src.pixels[20:30, 20:30] = (200, 50, 25, 255)

    patch = image_service.crop_and_resize(src, BoundingBox(20, 20, 10, 10), 37, 23)

    assert (patch.pixels == (200, 50, 25, 255)).all()


def test_crop_and_resize_same_size_is_exact(image_service, noise):
    src = noise(30, 30)
    patch = image_service.crop_and_resize(src, BoundingBox(3, 4, 10, 12), 10, 12)
    np.testing.assert_array_equal(patch.pixels, src.pixels[4:16, 3:13])


def test_crop_and_resize_rejects_out_of_bounds_box(image_service, noise):
    with pytest.raises(ValueError):
        image_service.crop_and_resize(noise(20, 20), BoundingBox(15, 0, 10, 5), 5, 5)


def test_fit_contain_centers_and_pads(image_service, solid):
    src = solid(50, 100, (0, 255, 0, 255))

    fitted = image_service.fit_contain(src, 100, 100)

    assert fitted.size == (100, 100)
    assert (fitted.pixels[:, 25:75] == (0, 255, 0, 255)).all()
    assert (fitted.pixels[:, :25] == 0).all()
    assert (fitted.pixels[:, 75:] == 0).all()


def test_fit_contain_scales_without_distortion(image_service, solid):
    src = solid(40, 20, (255, 0, 0, 255))

    fitted = image_service.fit_contain(src, 60, 60)

    opaque_rows = np.flatnonzero(fitted.pixels[:, :, 3].any(axis=1))
    opaque_cols = np.flatnonzero(fitted.pixels[:, :, 3].any(axis=0))
    assert len(opaque_cols) == 60
    assert len(opaque_rows) == 30
    assert opaque_rows[0] == 15


def test_fit_contain_same_size_is_a_copy(image_service, noise):
    src = noise(16, 9)
    fitted = image_service.fit_contain(src, 16, 9)
    np.testing.assert_array_equal(fitted.pixels, src.pixels)
    assert fitted.pixels is not src.pixels


def test_composite_opaque_overlay_replaces(image_service, solid):
    dest = solid(10, 10, (0, 0, 0, 255))
    overlay = solid(3, 2, (255, 10, 20, 255))

    image_service.composite(dest, overlay, 4, 5)

    assert (dest.pixels[5:7, 4:7] == (255, 10, 20, 255)).all()
    assert (dest.pixels[:5] == (0, 0, 0, 255)).all()
    assert (dest.pixels[:, :4] == (0, 0, 0, 255)).all()


def test_composite_blends_by_alpha(image_service, solid):
    dest = solid(4, 4, (0, 0, 0, 255))
    overlay = solid(2, 2, (255, 255, 255, 128))

    image_service.composite(dest, overlay, 1, 1)

    assert (dest.pixels[1:3, 1:3, :3] == 128).all()
    assert (dest.pixels[1:3, 1:3, 3] == 255).all()
    assert (dest.pixels[0, :, :3] == 0).all()


def test_composite_onto_transparent_keeps_overlay_color(image_service, solid):
    dest = Raster.blank(6, 6)
    overlay = solid(6, 6, (90, 180, 30, 64))

    image_service.composite(dest, overlay, 0, 0)

    assert (dest.pixels == (90, 180, 30, 64)).all()


def test_composite_clips_outside_pixels(image_service, solid):
    dest = solid(4, 4, (0, 0, 0, 255))
    overlay = solid(4, 4, (255, 255, 255, 255))

    image_service.composite(dest, overlay, -2, -2)

    assert dest.size == (4, 4)
    assert (dest.pixels[:2, :2] == 255).all()
    assert (dest.pixels[2:, :, :3] == 0).all()
    assert (dest.pixels[:, 2:, :3] == 0).all()


def test_composite_fully_outside_is_noop(image_service, solid):
    dest = solid(4, 4, (7, 7, 7, 255))
    image_service.composite(dest, solid(3, 3, (255, 0, 0, 255)), 10, -8)
    assert (dest.pixels == (7, 7, 7, 255)).all()
