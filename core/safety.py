"""
PixelDrift -- Safety & Resource Guards
Preflight checks for input files and image buffers, plus the error types
raised at the engine boundary.
"""

import os
from pathlib import Path

import numpy as np

# --- Configurable Limits ---
MAX_FILE_MB = 100          # Maximum input file size
MAX_IMAGE_PIXELS = 4096 * 4096
ALLOWED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".bmp", ".webp", ".tif", ".tiff"}


class SafetyError(Exception):
    """Raised when a preflight check fails."""
    pass


class ParameterError(ValueError):
    """Raised when a parameter name is unknown or its value is invalid."""
    pass


class LoadError(Exception):
    """Raised when an image cannot be loaded into the simulation."""
    pass


def preflight(input_path: str) -> dict:
    """Run all safety checks before decoding an image file.

    Args:
        input_path: Path to the input image.

    Returns:
        dict with file metadata (path, size_mb, extension)

    Raises:
        SafetyError: If any check fails.
        FileNotFoundError: If input doesn't exist.
    """
    input_path = str(input_path)
    real_path = os.path.realpath(input_path)

    # 1. File exists
    if not os.path.isfile(real_path):
        raise FileNotFoundError(f"Input file not found: {input_path}")

    # 2. File size check
    size_mb = os.path.getsize(real_path) / (1024 * 1024)
    if size_mb > MAX_FILE_MB:
        raise SafetyError(
            f"Input file is {size_mb:.0f}MB, exceeds {MAX_FILE_MB}MB limit. "
            f"Use a smaller image."
        )

    # 3. File extension check
    ext = Path(real_path).suffix.lower()
    if ext not in ALLOWED_EXTENSIONS:
        raise SafetyError(
            f"File type '{ext}' not allowed. "
            f"Supported: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
        )

    return {
        "path": real_path,
        "size_mb": size_mb,
        "extension": ext,
    }


def validate_image(rgba, width: int, height: int) -> np.ndarray:
    """Check an RGBA buffer and return it as a (height, width, 4) uint8 array.

    Accepts either a flat buffer of width*height*4 bytes or an array that
    already has the (height, width, 4) shape.

    Raises:
        LoadError: Wrong dtype, shape or dimensions.
        SafetyError: Image larger than MAX_IMAGE_PIXELS.
    """
    try:
        width = int(width)
        height = int(height)
    except (TypeError, ValueError):
        raise LoadError(f"Image dimensions must be integers, got {width!r} x {height!r}")
    if width <= 0 or height <= 0:
        raise LoadError(f"Image dimensions must be positive, got {width}x{height}")
    if width * height > MAX_IMAGE_PIXELS:
        raise SafetyError(
            f"Image is {width}x{height} ({width * height} pixels), "
            f"max is {MAX_IMAGE_PIXELS} pixels."
        )

    arr = np.asarray(rgba)
    if arr.dtype != np.uint8:
        raise LoadError(f"Image data must be uint8, got {arr.dtype}")
    if arr.ndim == 1:
        if arr.size != width * height * 4:
            raise LoadError(
                f"Flat RGBA buffer has {arr.size} bytes, expected {width * height * 4} "
                f"for {width}x{height}"
            )
        arr = arr.reshape(height, width, 4)
    elif arr.shape != (height, width, 4):
        raise LoadError(f"Image shape {arr.shape} does not match ({height}, {width}, 4)")
    return arr
