"""Custom exceptions for the worker.

Every class carries the HTTP status and label the transport layer answers with.
"""


class BadRobotError(Exception):
    """Base worker error."""
    status = 500
    label = "Processing failed"


class InputValidationError(BadRobotError):
    """Missing files, mismatched mask counts, bad request knobs."""
    status = 400
    label = "Bad Request"


class EmptyMaskError(InputValidationError):
    """A mask has no active pixel."""

    def __init__(self, pair_index: int, role: str):
        super().__init__(f"{role} mask of pair {pair_index} is empty. Paint at least one region.")
        self.pair_index = pair_index
        self.role = role


class PayloadTooLargeError(InputValidationError):
    """An uploaded file exceeds the size limit."""
    status = 413
    label = "Payload Too Large"


class UnsupportedMediaError(BadRobotError):
    """Declared media type is not on the allow-list."""
    status = 415
    label = "Unsupported Media Type"


class CorruptImageError(UnsupportedMediaError):
    """Bytes of an accepted media type that cannot be decoded."""
    pass


class GenerationError(BadRobotError):
    """The external image model failed or returned no image."""
    status = 502
    label = "Generation failed"


class ConfigurationError(BadRobotError):
    """Worker is missing configuration for the requested operation."""
    pass
