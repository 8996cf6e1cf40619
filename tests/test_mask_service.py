import numpy as np
import pytest

from badrobot.models.bounding_box import BoundingBox
from badrobot.models.raster import Raster
from badrobot.services.mask_service import ACTIVE_THRESHOLD, MaskService


@pytest.fixture
def mask_service():
    return MaskService()


def test_extract_bbox_single_rectangle(mask_service, rect_mask):
    mask = rect_mask(100, 100, 10, 10, 20, 20)
    assert mask_service.extract_bbox(mask) == BoundingBox(x=10, y=10, w=20, h=20)


def test_extract_bbox_covers_irregular_mask(mask_service, rect_mask):
    # two disjoint blobs and a stray pixel: box must span all of them
    mask = rect_mask(64, 48, 5, 30, 4, 3)
    mask.pixels[2:6, 40:50] = (255, 255, 255, 255)
    mask.pixels[45, 20] = (200, 200, 200, 255)

    box = mask_service.extract_bbox(mask)

    assert box == BoundingBox(x=5, y=2, w=45, h=44)


@pytest.mark.parametrize("seed", [0, 1, 2, 3])
def test_extract_bbox_is_tight_for_random_masks(mask_service, seed):
    rng = np.random.RandomState(seed)
    pixels = np.zeros((40, 50, 4), dtype=np.uint8)
    active = rng.rand(40, 50) > 0.97
    pixels[active] = (255, 255, 255, 255)
    mask = Raster(pixels)

    ys, xs = np.nonzero(active)
    box = mask_service.extract_bbox(mask)

    assert box == BoundingBox(
        x=int(xs.min()), y=int(ys.min()),
        w=int(xs.max() - xs.min() + 1), h=int(ys.max() - ys.min() + 1),
    )


def test_extract_bbox_all_black_is_none(mask_service, solid):
    assert mask_service.extract_bbox(solid(30, 20, (0, 0, 0, 255))) is None


def test_threshold_is_exclusive(mask_service, solid):
    mask = solid(10, 10, (0, 0, 0, 255))
    mask.pixels[3, 4] = (ACTIVE_THRESHOLD,) * 3 + (255,)
    assert mask_service.extract_bbox(mask) is None

    mask.pixels[3, 4] = (ACTIVE_THRESHOLD + 1,) * 3 + (255,)
    assert mask_service.extract_bbox(mask) == BoundingBox(x=4, y=3, w=1, h=1)


def test_any_bright_channel_makes_pixel_active(mask_service, solid):
    mask = solid(10, 10, (0, 0, 0, 255))
    mask.pixels[7, 2] = (0, 0, 250, 255)
    assert mask_service.extract_bbox(mask) == BoundingBox(x=2, y=7, w=1, h=1)


def test_alpha_channel_is_ignored(mask_service, solid):
    mask = solid(10, 10, (0, 0, 0, 255))
    mask.pixels[:, :, 3] = 255
    mask.pixels[1, 1] = (255, 255, 255, 0)
    assert mask_service.extract_bbox(mask) == BoundingBox(x=1, y=1, w=1, h=1)


@pytest.mark.parametrize("box, expected", [
    (BoundingBox(-5, -5, 10, 10), BoundingBox(0, 0, 10, 10)),
    (BoundingBox(25, 3, 10, 4), BoundingBox(19, 3, 1, 4)),
    (BoundingBox(5, 5, 0, 0), BoundingBox(5, 5, 1, 1)),
    (BoundingBox(15, 15, 100, 100), BoundingBox(15, 15, 5, 5)),
    (BoundingBox(2, 4, 6, 8), BoundingBox(2, 4, 6, 8)),
])
def test_clamp_bbox(box, expected):
    assert MaskService.clamp_bbox(box, 20, 20) == expected


@pytest.mark.parametrize("seed", range(5))
def test_clamp_bbox_always_inside_canvas(seed):
    rng = np.random.RandomState(seed)
    width, height = 37, 23
    for _ in range(50):
        x, y, w, h = (int(v) for v in rng.randint(-100, 100, size=4))
        box = MaskService.clamp_bbox(BoundingBox(x, y, w, h), width, height)
        assert 0 <= box.x < width and 0 <= box.y < height
        assert box.w >= 1 and box.h >= 1
        assert box.right <= width and box.bottom <= height


def test_feather_softens_edges_and_keeps_input(mask_service, rect_mask):
    mask = rect_mask(60, 60, 20, 20, 20, 20)
    original = mask.pixels.copy()

    feathered = mask_service.feather(mask, radius=4)

    np.testing.assert_array_equal(mask.pixels, original)
    assert feathered.size == mask.size
    alpha = feathered.pixels[:, :, 3]
    assert alpha[30, 30] > 240            # deep inside
    assert 0 < alpha[20, 30] < 255        # on the edge
    assert 0 < alpha[18, 30] < alpha[20, 30]  # just outside, ramping down
    assert alpha[0, 0] == 0
    # all channels carry the same coverage
    for channel in range(3):
        np.testing.assert_array_equal(feathered.pixels[:, :, channel], alpha)


def test_feather_full_mask_stays_opaque(mask_service, solid):
    feathered = mask_service.feather(solid(32, 24, (255, 255, 255, 255)))
    assert (feathered.pixels[:, :, 3] == 255).all()


def test_feather_radius_zero_is_binary(mask_service, rect_mask):
    mask = rect_mask(20, 20, 5, 5, 4, 4)
    alpha = mask_service.feather(mask, radius=0).pixels[:, :, 3]
    assert set(np.unique(alpha)) == {0, 255}
    assert (alpha[5:9, 5:9] == 255).all()
