import os
import re
import logging
from typing import Iterable, List, Mapping, Tuple

from dotenv import load_dotenv

from ..exceptions import InputValidationError, PayloadTooLargeError, UnsupportedMediaError
from ..models.mask_pair import MaskPair
from ..models.upload import RegenerationRequest, UploadedFile
from ..repositories.image_repository import ACCEPTED_MIME_TYPES, OUTPUT_FORMATS, ImageRepository
from ..services.generation_service import MODES

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = int(os.getenv("MAX_FILE_SIZE_MB", "25")) * 1024 * 1024
MAX_UPLOAD_FILES = int(os.getenv("MAX_UPLOAD_FILES", "40"))
DEFAULT_MODE = os.getenv("DEFAULT_MODE", "auto")
DEFAULT_RETURN_FORMAT = os.getenv("DEFAULT_RETURN_FORMAT", "png")
DEFAULT_QUALITY = int(os.getenv("DEFAULT_QUALITY", "92"))
QUALITY_RANGE = (40, 100)

# leading integer, the rest is ignored: "92.5" → 92
_LEADING_INT = re.compile(r"[+-]?\d+")

SOURCE_IMAGE = "source_image"
REFERENCE_IMAGE = "reference_image"
SOURCE_MASK_PREFIX = "source_mask_"
REFERENCE_MASK_PREFIX = "reference_mask_"


def ensure_files(files: Mapping[str, UploadedFile], fields: Iterable[str]) -> None:
    for field in fields:
        upload = files.get(field)
        if upload is None or not upload.data:
            raise InputValidationError(f"Missing file: {field}")


def check_upload(upload: UploadedFile) -> None:
    """
    Size and media type checks for one uploaded part.
    """
    if len(upload.data) > MAX_FILE_SIZE:
        raise PayloadTooLargeError(
            f"{upload.field_name} is {len(upload.data)} bytes, limit is {MAX_FILE_SIZE} bytes"
        )
    if (upload.mime_type or "").lower() not in ACCEPTED_MIME_TYPES:
        raise UnsupportedMediaError(f"Unsupported file type for {upload.field_name}: {upload.mime_type}")


def _mask_suffix(field_name: str, prefix: str) -> int:
    suffix = field_name[len(prefix):]
    if not suffix.isdecimal():
        raise InputValidationError(f"Mask field {field_name} must end with a number, e.g. {prefix}0")
    return int(suffix)


def list_masks(files: Mapping[str, UploadedFile], prefix: str) -> List[UploadedFile]:
    """
    Masks named <prefix><n>, ascending by n. Gaps in the numbering are fine,
    two fields with the same n (e.g. _1 and _01) are not.
    """
    numbered: List[Tuple[int, UploadedFile]] = []
    seen = {}
    for name, upload in files.items():
        if not name.startswith(prefix):
            continue
        number = _mask_suffix(name, prefix)
        if number in seen:
            raise InputValidationError(f"Mask fields {seen[number]} and {name} share the number {number}")
        seen[number] = name
        numbered.append((number, upload))
    numbered.sort(key=lambda item: item[0])
    return [upload for _, upload in numbered]


def parse_quality(raw) -> int:
    if raw is None or str(raw).strip() == "":
        quality = DEFAULT_QUALITY
    else:
        match = _LEADING_INT.match(str(raw).strip())
        if match is None:
            raise InputValidationError(f"quality must be an integer, got {raw!r}")
        quality = int(match.group())
    low, high = QUALITY_RANGE
    return min(high, max(low, quality))


def parse_return_format(raw) -> str:
    fmt = (raw or DEFAULT_RETURN_FORMAT).strip().lower()
    if fmt not in OUTPUT_FORMATS:
        raise InputValidationError(f"return_format must be png or jpeg, got {raw!r}")
    return "jpeg" if fmt == "jpg" else fmt


def parse_mode(raw) -> str:
    mode = (raw or DEFAULT_MODE).strip().lower()
    if mode not in MODES:
        raise InputValidationError(f"Unknown mode: {mode}. Expected one of {', '.join(MODES)}")
    return mode


def build_regeneration_request(
    files: Mapping[str, UploadedFile],
    form: Mapping[str, str],
    image_repository: ImageRepository = ImageRepository(),
) -> RegenerationRequest:
    """
    Validate one /process submission and decode it for the pipeline.

    Order of checks:
      - base and reference present, file count within limits
      - base and reference media types
      - at least one source/reference mask each, equal counts
      - knobs (mode, return_format, quality)
      - decode base, reference, then every mask pair in order

    Returns:
        RegenerationRequest: decoded rasters, ordered MaskPairs and delivery knobs.
    """
    ensure_files(files, [SOURCE_IMAGE, REFERENCE_IMAGE])
    if len(files) > MAX_UPLOAD_FILES:
        raise InputValidationError(f"Too many files: {len(files)}, limit is {MAX_UPLOAD_FILES}")

    source_file = files[SOURCE_IMAGE]
    reference_file = files[REFERENCE_IMAGE]
    check_upload(source_file)
    check_upload(reference_file)

    source_masks = list_masks(files, SOURCE_MASK_PREFIX)
    reference_masks = list_masks(files, REFERENCE_MASK_PREFIX)
    if not source_masks or not reference_masks:
        raise InputValidationError(
            "No masks found. Please paint at least one source_mask_# and reference_mask_#."
        )
    if len(source_masks) != len(reference_masks):
        raise InputValidationError(
            f"Mask count mismatch. source={len(source_masks)} reference={len(reference_masks)}"
        )

    mode = parse_mode(form.get("mode"))
    return_format = parse_return_format(form.get("return_format"))
    quality = parse_quality(form.get("quality"))

    base = image_repository.decode(source_file.data, source_file.mime_type)
    reference = image_repository.decode(reference_file.data, reference_file.mime_type)

    pairs: List[MaskPair] = []
    for i, (source_mask, reference_mask) in enumerate(zip(source_masks, reference_masks)):
        check_upload(source_mask)
        check_upload(reference_mask)
        pairs.append(MaskPair(
            index=i,
            source_mask=image_repository.decode(source_mask.data, source_mask.mime_type),
            reference_mask=image_repository.decode(reference_mask.data, reference_mask.mime_type),
        ))

    logger.info(
        f"Accepted request: base {base.width}x{base.height}, reference {reference.width}x{reference.height}, "
        f"{len(pairs)} pair(s), mode={mode}, return_format={return_format}, quality={quality}"
    )
    return RegenerationRequest(
        base=base,
        reference=reference,
        pairs=pairs,
        mode=mode,
        return_format=return_format,
        quality=quality,
    )
