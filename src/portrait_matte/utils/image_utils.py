"""Pixel buffer helpers: validation, resampling and alpha compositing."""

from typing import Optional, Tuple, Union

import cv2
import numpy as np
from PIL import Image

from ..errors import DimensionMismatchError, InvalidInputError


ImageLike = Union[np.ndarray, Image.Image]


def as_image_array(image: Optional[ImageLike]) -> np.ndarray:
    """
    Validate a caller-supplied image and return it as an 8-bit array.

    PIL images are converted to RGBA. Grayscale arrays are expanded to RGB.
    The returned array may share memory with the input, so callers must not write to it.

    Args:
        image: NumPy array (H, W), (H, W, 3) or (H, W, 4), or a PIL image.

    Returns:
        uint8 array of shape (H, W, 3) or (H, W, 4).

    Raises:
        InvalidInputError: If the image is None, empty, or of an unsupported layout.
    """
    if image is None:
        raise InvalidInputError("Image is None")

    if isinstance(image, Image.Image):
        image = np.asarray(image.convert("RGBA"))

    if not isinstance(image, np.ndarray):
        raise InvalidInputError(f"Unsupported image type: {type(image).__name__}")

    if image.dtype != np.uint8:
        raise InvalidInputError(f"Expected uint8 pixels, got {image.dtype}")

    if image.ndim == 2:
        image = np.repeat(image[:, :, np.newaxis], 3, axis=2)
    elif image.ndim != 3 or image.shape[2] not in (3, 4):
        raise InvalidInputError(f"Unsupported image shape: {image.shape}")

    h, w = image.shape[:2]
    if h == 0 or w == 0:
        raise InvalidInputError(f"Image has zero size: {w}x{h}")

    return image


def image_size(image: np.ndarray) -> Tuple[int, int]:
    """Return (W, H) of an image or alpha array."""
    return image.shape[1], image.shape[0]


def to_rgba(image: ImageLike) -> np.ndarray:
    """Return a new RGBA copy of the image. RGB inputs get an opaque alpha channel."""
    image = as_image_array(image)
    if image.shape[2] == 4:
        return image.copy()

    h, w = image.shape[:2]
    rgba = np.full((h, w, 4), 255, dtype=np.uint8)
    rgba[:, :, :3] = image
    return rgba


def resize_bilinear(image: np.ndarray, size: Tuple[int, int]) -> np.ndarray:
    """
    Resize an image with bilinear interpolation.

    Args:
        image: Array of shape (H, W) or (H, W, C).
        size: Target size (W, H).

    Returns:
        Resized array with the same dtype and channel count.
    """
    width, height = size
    if width <= 0 or height <= 0:
        raise InvalidInputError(f"Invalid resize target: {width}x{height}")

    if image.shape[1] == width and image.shape[0] == height:
        return image.copy()

    return cv2.resize(image, (width, height), interpolation=cv2.INTER_LINEAR)


def alpha_to_bytes(alpha: np.ndarray) -> np.ndarray:
    """Convert a float alpha map to uint8 with round(alpha * 255), clamping first."""
    alpha = np.clip(np.nan_to_num(alpha, nan=0.0), 0.0, 1.0)
    return np.rint(alpha * 255.0).astype(np.uint8)


def apply_alpha_to_image(
    image: Optional[np.ndarray],
    alpha: np.ndarray,
    threshold: Optional[float] = None
) -> np.ndarray:
    """
    Apply an alpha matte to an image.

    Args:
        image: RGB or RGBA image (H, W, C), or None for the white cutout
               (only valid together with a threshold).
        alpha: Alpha matte as float array (H, W) in [0, 1].
        threshold: If given, alpha is binarized: values strictly above the
                   threshold become opaque, everything else transparent.

    Returns:
        RGBA image (H, W, 4).

    Raises:
        InvalidInputError: If image is None without a threshold.
        DimensionMismatchError: If image and alpha sizes differ.
    """
    if alpha.ndim != 2:
        raise InvalidInputError(f"Alpha must be 2-D, got shape {alpha.shape}")

    h, w = alpha.shape
    alpha = np.clip(np.nan_to_num(alpha, nan=0.0), 0.0, 1.0)

    if image is None:
        if threshold is None:
            raise InvalidInputError("Continuous compositing requires the source image")
        # White silhouette on a transparent background
        rgba = np.zeros((h, w, 4), dtype=np.uint8)
        rgba[alpha > threshold] = 255
        return rgba

    if image.shape[:2] != (h, w):
        raise DimensionMismatchError(
            f"Image size {image.shape[1]}x{image.shape[0]} does not match alpha size {w}x{h}"
        )

    rgba = np.empty((h, w, 4), dtype=np.uint8)
    rgba[:, :, :3] = image[:, :, :3]
    if threshold is None:
        rgba[:, :, 3] = alpha_to_bytes(alpha)
    else:
        rgba[:, :, 3] = np.where(alpha > threshold, 255, 0).astype(np.uint8)

    return rgba
