from __future__ import annotations
import logging
from typing import Callable, Dict

from ..exceptions import GenerationError, InputValidationError, PayloadTooLargeError, UnsupportedMediaError
from ..models.raster import Raster
from ..repositories.gemini_repository import GeminiRepository
from ..repositories.image_repository import ImageRepository

logger = logging.getLogger(__name__)

# (context_patch, reference_patch) → regenerated patch
Generator = Callable[[Raster, Raster], Raster]

PASSTHROUGH_MODE = "passthrough"

PROMPTS: Dict[str, str] = {
    "auto": (
        "You are given two image patches of {width}x{height} pixels. "
        "The first is a damaged region of a photo, the second shows how that region should look. "
        "Regenerate the first patch so its content matches the second patch. "
        "Keep the exact framing, crop and resolution of the first patch; "
        "keep lighting and grain consistent with it. Return only the image."
    ),
    "style": (
        "You are given two image patches of {width}x{height} pixels. "
        "Keep the shapes and layout of the first patch and repaint it with the colors, "
        "texture and style of the second patch. "
        "Keep the exact framing, crop and resolution of the first patch. Return only the image."
    ),
}

MODES = (PASSTHROUGH_MODE, *PROMPTS)


def pass_through(context_patch: Raster, reference_patch: Raster) -> Raster:
    """Direct copy of the reference patch, no model involved."""
    return reference_patch.copy()


class GenerationService:
    """
    Picks the patch generator for a mode.

    • passthrough → pass_through, never touches the model.
    • auto / style → Gemini, prompt chosen by mode.
    The Gemini repository is built on first use, so a passthrough-only worker
    needs no credentials.
    """

    def __init__(self, gemini_repository: GeminiRepository = None,
                 image_repository: ImageRepository = None):
        self._gemini_repository = gemini_repository
        self.image_repository = image_repository or ImageRepository()

    @property
    def gemini_repository(self) -> GeminiRepository:
        if self._gemini_repository is None:
            self._gemini_repository = GeminiRepository()
        return self._gemini_repository

    def resolve(self, mode: str) -> Generator:
        mode = (mode or "").strip().lower()
        if mode == PASSTHROUGH_MODE:
            return pass_through
        if mode not in PROMPTS:
            raise InputValidationError(f"Unknown mode: {mode or 'empty'}. Expected one of {', '.join(MODES)}")

        # fail on missing credentials before any pixel work starts
        repository = self.gemini_repository

        def generate(context_patch: Raster, reference_patch: Raster) -> Raster:
            return self.regenerate_patch(context_patch, reference_patch, mode=mode, repository=repository)

        return generate

    def regenerate_patch(
            self,
            context_patch: Raster,
            reference_patch: Raster,
            mode: str = "auto",
            repository: GeminiRepository = None,
    ) -> Raster:
        """
        Ask the model for a new version of *context_patch* guided by *reference_patch*.
        The result can have any size; the caller resizes it.
        """
        repository = repository or self.gemini_repository
        prompt = PROMPTS[mode].format(width=context_patch.width, height=context_patch.height)

        logger.debug(f"Requesting {mode} regeneration of a {context_patch.width}x{context_patch.height} patch")
        data, mime_type = repository.generate_image(
            prompt,
            [self.image_repository.to_pil(context_patch), self.image_repository.to_pil(reference_patch)],
        )

        try:
            return self.image_repository.decode(data, mime_type)
        except (UnsupportedMediaError, PayloadTooLargeError) as err:
            raise GenerationError(f"Model returned an unreadable image: {err}") from err
