# repositories/gemini_repository.py
"""
Access layer for the Gemini image model (google-genai).

• The genai.Client is injected; only the default path builds one from env.
• .generate_image(prompt, images) → (bytes, mime_type) of the first image part.
"""
from __future__ import annotations
import os
import logging
from typing import List, Tuple

from dotenv import load_dotenv
from google import genai
from google.genai import types
from PIL import Image as PILImage

from ..exceptions import ConfigurationError, GenerationError

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class GeminiRepository:
    """
    One request → one generated image. No retries here; callers decide.
    """

    def __init__(self, client=None, model: str = None, timeout_ms: int = None):
        self.model = model or os.getenv("GEMINI_IMAGE_MODEL", "gemini-2.5-flash-image")
        if client is None:
            client = self._build_client(timeout_ms)
        self.client = client

    @staticmethod
    def _build_client(timeout_ms: int = None):
        api_key = os.getenv("GEMINI_API_KEY")
        if not api_key:
            raise ConfigurationError(
                "GEMINI_API_KEY is not set. Configure it or request mode=passthrough."
            )
        if timeout_ms is None:
            timeout_ms = int(os.getenv("GEMINI_TIMEOUT_MS", "120000"))
        return genai.Client(api_key=api_key, http_options=types.HttpOptions(timeout=timeout_ms))

    # --------------------------------------------------
    def generate_image(self, prompt: str, images: List[PILImage.Image]) -> Tuple[bytes, str]:
        """
        Args
        ----
        prompt : instruction text
        images : PIL images sent after the prompt, in order

        Returns
        -------
        (data, mime_type) of the first inline image part
        """
        try:
            response = self.client.models.generate_content(
                model=self.model,
                contents=[prompt, *images],
                config=types.GenerateContentConfig(response_modalities=["IMAGE"]),
            )
        except Exception as err:
            logger.error(f"Gemini request to {self.model} failed: {err}")
            raise GenerationError(f"Gemini request failed: {err}") from err

        for candidate in response.candidates or []:
            content = candidate.content
            for part in (content.parts if content else None) or []:
                inline = part.inline_data
                if inline and inline.data:
                    return inline.data, inline.mime_type or "image/png"

        feedback = getattr(response, "prompt_feedback", None)
        reason = getattr(feedback, "block_reason", None) if feedback else None
        raise GenerationError(f"No image part found in model response (reason: {reason or 'unknown'})")
