from __future__ import annotations


class VisionKitError(ValueError):
    """
    Base error for vision_kit operations.

    Subclasses ValueError so callers that already guard argument errors with
    `except ValueError` keep working. `code` is a stable string for
    programmatic handling (batch error records carry it).
    """

    code = "VISION_KIT_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class InvalidInput(VisionKitError):
    """Malformed or mismatched-length arrays, non-positive dimensions."""

    code = "INVALID_INPUT"


class OutOfBounds(VisionKitError):
    """Crop, patch or ROI extending past the source extent."""

    code = "OUT_OF_BOUNDS"


class DimensionMismatch(VisionKitError):
    """Batch or tensor shape disagreement."""

    code = "DIMENSION_MISMATCH"


class UnsupportedFormat(VisionKitError):
    """Unknown color, layout, box format, strategy or dtype tag."""

    code = "UNSUPPORTED_FORMAT"


def require_choice(value: str, allowed, what: str) -> str:
    if not isinstance(value, str):
        raise UnsupportedFormat(f"{what} must be a string, got {type(value).__name__}")
    key = value.lower()
    if key not in allowed:
        raise UnsupportedFormat(f"Unsupported {what}: {value!r} (expected one of {sorted(allowed)})")
    return key


def require_positive_dims(**dims: int) -> None:
    for name, value in dims.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise InvalidInput(f"{name} must be a number")
        if value <= 0:
            raise InvalidInput(f"{name} must be > 0 (got {value})")
