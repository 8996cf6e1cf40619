"""
Command line entry point for running the regeneration pipeline on files.

Rebuild one linked region, copying the reference patch directly::

    badrobot-regenerate base.png reference.png \\
        --source-mask a0.png --reference-mask b0.png \\
        --mode passthrough --output fixed.png

Masks pair up in the order given: the n-th --source-mask goes with the n-th
--reference-mask.
"""
from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

from ..exceptions import BadRobotError
from ..models.mask_pair import MaskPair
from ..pipeline.patch_regenerator import regenerate
from ..pipeline.upload_validator import QUALITY_RANGE
from ..repositories.image_repository import ImageRepository
from ..services.generation_service import MODES, GenerationService

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="badrobot-regenerate",
        description="Rebuild masked regions of a base image from linked regions of a reference image.",
    )
    parser.add_argument("base", type=Path, help="Image to correct.")
    parser.add_argument("reference", type=Path, help="Image holding the correct content.")
    parser.add_argument("--source-mask", dest="source_masks", type=Path, action="append", default=[],
                        help="Mask over the base image (white = replace). Repeat per region.")
    parser.add_argument("--reference-mask", dest="reference_masks", type=Path, action="append", default=[],
                        help="Mask over the reference image (white = take from). Repeat per region.")
    parser.add_argument("--mode", choices=MODES, default=os.getenv("DEFAULT_MODE", "auto"),
                        help="passthrough copies the reference patch; auto/style call the image model.")
    parser.add_argument("-o", "--output", type=Path, required=True,
                        help="Output file; .jpg/.jpeg writes JPEG, anything else PNG.")
    parser.add_argument("--quality", type=int, default=92, help="JPEG quality (40-100).")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    return parser


def _load_pairs(
    image_repository: ImageRepository,
    source_masks: Sequence[Path],
    reference_masks: Sequence[Path],
) -> List[MaskPair]:
    return [
        MaskPair(
            index=i,
            source_mask=image_repository.load(source_path),
            reference_mask=image_repository.load(reference_path),
        )
        for i, (source_path, reference_path) in enumerate(zip(source_masks, reference_masks))
    ]


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else os.getenv("LOG_LEVEL", "INFO").upper(),
        format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
        datefmt='%H:%M:%S'
    )

    if not args.source_masks or not args.reference_masks:
        parser.error("at least one --source-mask and one --reference-mask are required")
    if len(args.source_masks) != len(args.reference_masks):
        parser.error(f"mask count mismatch: source={len(args.source_masks)} "
                     f"reference={len(args.reference_masks)}")
    low, high = QUALITY_RANGE
    quality = min(high, max(low, args.quality))

    image_repository = ImageRepository()
    generation_service = GenerationService(image_repository=image_repository)

    try:
        generate = generation_service.resolve(args.mode)
        base = image_repository.load(args.base)
        reference = image_repository.load(args.reference)
        pairs = _load_pairs(image_repository, args.source_masks, args.reference_masks)

        canvas = regenerate(base, reference, pairs, generate)
        saved = image_repository.save(canvas, args.output, quality=quality)
    except (BadRobotError, FileNotFoundError) as err:
        logger.error(f"Regeneration failed: {err}")
        return 1

    logger.info(f"Wrote {canvas.width}x{canvas.height} result to {saved}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
