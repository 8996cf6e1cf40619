# pipeline/patch_regenerator.py
"""
Patch Regeneration Pipeline
Rebuilds every masked region of a base image from the linked region of a
reference image, one mask pair at a time, into a single fixed-size canvas.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from ..exceptions import BadRobotError, EmptyMaskError, GenerationError, InputValidationError
from ..models.bounding_box import BoundingBox
from ..models.mask_pair import MaskPair
from ..models.raster import Raster
from ..services.generation_service import Generator
from ..services.image_service import ImageService
from ..services.mask_service import FEATHER_RADIUS, MaskService

logger = logging.getLogger(__name__)


@dataclass
class _PairPlan:
    index: int
    source_mask: Raster          # aligned to the canvas
    source_box: BoundingBox      # A
    reference_box: BoundingBox   # B


def _align(raster: Raster, width: int, height: int, image_service: ImageService) -> Raster:
    if raster.size == (width, height):
        return raster
    return image_service.fit_contain(raster, width, height)


def _resolve_box(mask: Raster, width: int, height: int, mask_service: MaskService) -> Optional[BoundingBox]:
    box = mask_service.extract_bbox(mask)
    if box is None:
        return None
    return mask_service.clamp_bbox(box, width, height)


def plan_pairs(
    pairs: List[MaskPair],
    width: int,
    height: int,
    *,
    image_service: ImageService,
    mask_service: MaskService,
) -> List[_PairPlan]:
    """
    Align every mask to the canvas and resolve both boxes of every pair.
    Raises EmptyMaskError for the first pair (in order) with an empty mask.
    """
    plans = []
    for pair in pairs:
        source_mask = _align(pair.source_mask, width, height, image_service)
        reference_mask = _align(pair.reference_mask, width, height, image_service)

        source_box = _resolve_box(source_mask, width, height, mask_service)
        if source_box is None:
            raise EmptyMaskError(pair.index, "source")
        reference_box = _resolve_box(reference_mask, width, height, mask_service)
        if reference_box is None:
            raise EmptyMaskError(pair.index, "reference")

        plans.append(_PairPlan(pair.index, source_mask, source_box, reference_box))
    return plans


def _generate(generate: Generator, index: int, context_patch: Raster, reference_patch: Raster) -> Raster:
    try:
        generated = generate(context_patch, reference_patch)
    except BadRobotError:
        raise
    except Exception as err:
        logger.error(f"Generation for pair {index} failed: {err}")
        raise GenerationError(f"Generation failed for pair {index}: {err}") from err

    if not isinstance(generated, Raster):
        raise GenerationError(f"Generation for pair {index} returned no image")
    return generated


def regenerate(
    base: Raster,
    reference: Raster,
    pairs: List[MaskPair],
    generate: Generator,
    *,
    image_service: ImageService = ImageService(),
    mask_service: MaskService = MaskService(),
) -> Raster:
    """
    Replace each source region of *base* with content derived from the linked
    reference region.

    Steps per pair, strictly in order (later pairs paint over earlier ones):
    1. Boxes A (source mask) and B (reference mask), clamped to the canvas
    2. Reference cropped to B, resized to A's size
    3. Base cropped to A → context for the generator
    4. generate(context, reference_patch), result resized to A's size
    5. Source mask feathered (radius 4)
    6. Patch composited into a transparent scratch layer at A through the
       feathered alpha, scratch layer composited onto the canvas

    Args:
        base: Image to correct; fixes the output size.
        reference: Image holding the correct content. Contain-fitted to base if sizes differ.
        pairs: Ordered mask pairs. Masks are contain-fitted to base if sizes differ.
        generate: Patch generator. Use generation_service.pass_through for direct copies.

    Returns:
        Raster: The canvas, always base.width x base.height.

    Raises:
        EmptyMaskError: A mask of any pair has no active pixel. Nothing is produced.
        GenerationError: The generator failed or returned no image. Nothing is produced.
    """
    if generate is None:
        raise ValueError("generate is required; pass generation_service.pass_through for direct copies")
    if not pairs:
        raise InputValidationError("No mask pairs supplied")

    width, height = base.size
    reference = _align(reference, width, height, image_service)

    # every mask is checked before the first (possibly paid) generation call
    plans = plan_pairs(pairs, width, height, image_service=image_service, mask_service=mask_service)

    logger.info(f"Regenerating {len(plans)} region(s) on a {width}x{height} canvas")

    canvas = base.copy()
    for plan in plans:
        a, b = plan.source_box, plan.reference_box
        logger.debug(f"Pair {plan.index}: source box {a}, reference box {b}")

        reference_patch = image_service.crop_and_resize(reference, b, a.w, a.h)
        context_patch = image_service.crop_and_resize(base, a, a.w, a.h)

        generated = _generate(generate, plan.index, context_patch, reference_patch)
        if generated.size != (a.w, a.h):
            logger.debug(f"Pair {plan.index}: generator returned {generated.width}x{generated.height}, "
                         f"resizing to {a.w}x{a.h}")
        patch = image_service.resize(generated, a.w, a.h)

        feathered = mask_service.feather(plan.source_mask, FEATHER_RADIUS)
        coverage = feathered.pixels[a.y:a.bottom, a.x:a.right, 3].astype("uint16")
        patch.pixels[:, :, 3] = ((patch.pixels[:, :, 3].astype("uint16") * coverage + 127) // 255).astype("uint8")

        scratch = Raster.blank(width, height)
        image_service.composite(scratch, patch, a.x, a.y)
        image_service.composite(canvas, scratch, 0, 0)

    logger.info(f"Regeneration complete: {len(plans)} region(s) composited")
    return canvas
