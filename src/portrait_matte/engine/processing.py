"""
Pre- and postprocessing around the matting network.

Preprocessing resizes the source to the size the network expects and
normalizes it into a planar float tensor. Postprocessing maps the network
output back to source resolution, and compositing merges it with the
original pixels.
"""

from typing import NamedTuple, Optional, Tuple

import numpy as np

from ..errors import InferenceError, InvalidInputError
from ..utils.image_utils import (
    ImageLike,
    alpha_to_bytes,
    apply_alpha_to_image,
    as_image_array,
    image_size,
    resize_bilinear,
)
from .profiles import (
    AspectPreservingMultipleOf32,
    FixedSize,
    ModelProfile,
    Normalization,
    SizePolicy,
    Thresholded,
)


STRIDE = 32


class PreprocessResult(NamedTuple):
    """Model-ready tensor plus the sizes needed to invert the transform."""

    tensor: np.ndarray
    original_size: Tuple[int, int]  # (W, H)
    resized_size: Tuple[int, int]  # (W, H)


def compute_target_size(width: int, height: int, size_policy: SizePolicy) -> Tuple[int, int]:
    """
    Compute the network input size for a source image.

    Args:
        width: Source width.
        height: Source height.
        size_policy: FixedSize or AspectPreservingMultipleOf32.

    Returns:
        Target size (W, H).

    Raises:
        InvalidInputError: If source dims or policy parameters are not positive.
    """
    if width <= 0 or height <= 0:
        raise InvalidInputError(f"Image has zero size: {width}x{height}")

    if isinstance(size_policy, FixedSize):
        if size_policy.width <= 0 or size_policy.height <= 0:
            raise InvalidInputError(
                f"Invalid fixed size: {size_policy.width}x{size_policy.height}"
            )
        return size_policy.width, size_policy.height

    if isinstance(size_policy, AspectPreservingMultipleOf32):
        ref_size = size_policy.ref_size
        if ref_size <= 0:
            raise InvalidInputError(f"Invalid reference size: {ref_size}")

        # Shorter side goes to ref_size, the longer one follows the aspect ratio
        if width >= height:
            im_rh = ref_size
            im_rw = int(width / height * ref_size)
        else:
            im_rw = ref_size
            im_rh = int(height / width * ref_size)

        # Floor to stride, never round up
        im_rw = im_rw - im_rw % STRIDE
        im_rh = im_rh - im_rh % STRIDE

        return max(im_rw, STRIDE), max(im_rh, STRIDE)

    raise InvalidInputError(f"Unknown size policy: {size_policy!r}")


def normalize(rgb: np.ndarray, normalization: Normalization) -> np.ndarray:
    """Map uint8 channel values to float32 according to the normalization policy."""
    values = rgb.astype(np.float32) / 255.0
    if normalization is Normalization.SIGNED_UNIT:
        values = values * 2.0 - 1.0
    elif normalization is not Normalization.ZERO_TO_ONE:
        raise InvalidInputError(f"Unknown normalization: {normalization!r}")
    return values


def preprocess(image: ImageLike, profile: ModelProfile) -> PreprocessResult:
    """
    Preprocess an image for model input.

    Any alpha channel in the source is ignored; the tensor is planar RGB.

    Args:
        image: Source image (H, W, 3|4) uint8 or a PIL image.
        profile: Model profile providing size and normalization policies.

    Returns:
        PreprocessResult with a float32 tensor of shape (1, 3, H', W').
    """
    image = as_image_array(image)
    original_size = image_size(image)
    target_size = compute_target_size(*original_size, profile.size_policy)

    resized = resize_bilinear(np.ascontiguousarray(image[:, :, :3]), target_size)
    normalized = normalize(resized, profile.normalization)
    del resized

    # HWC -> NCHW
    tensor = np.ascontiguousarray(np.transpose(normalized, (2, 0, 1))[np.newaxis, ...])

    return PreprocessResult(tensor, original_size, target_size)


def upsample_nearest(grid: np.ndarray, size: Tuple[int, int]) -> np.ndarray:
    """
    Resize a 2-D grid with scale-and-clamp nearest sampling.

    Destination pixel x reads source column clamp(floor(x * src_w / dst_w), 0, src_w - 1),
    and rows likewise.

    Args:
        grid: Source grid (H', W').
        size: Destination size (W, H).
    """
    dst_w, dst_h = size
    if dst_w <= 0 or dst_h <= 0:
        raise InvalidInputError(f"Invalid upsample target: {dst_w}x{dst_h}")

    src_h, src_w = grid.shape
    xs = (np.arange(dst_w, dtype=np.intp) * src_w) // dst_w
    ys = (np.arange(dst_h, dtype=np.intp) * src_h) // dst_h
    xs = np.clip(xs, 0, src_w - 1)
    ys = np.clip(ys, 0, src_h - 1)

    return grid[ys[:, np.newaxis], xs[np.newaxis, :]]


def postprocess(
    raw: np.ndarray,
    original_size: Tuple[int, int],
    profile: Optional[ModelProfile] = None
) -> np.ndarray:
    """
    Postprocess model output to an alpha map at source resolution.

    The output policy of the profile does not affect the alpha map; it only
    matters at compositing time.

    Args:
        raw: Raw model output of shape (1, 1, H', W').
        original_size: Source size (W, H).
        profile: Model profile, accepted for symmetry with preprocess.

    Returns:
        Alpha map (H, W) float32 clamped to [0, 1].

    Raises:
        InferenceError: If the output does not have a single alpha channel.
    """
    raw = np.asarray(raw)
    if raw.ndim != 4 or raw.shape[0] != 1 or raw.shape[1] != 1:
        raise InferenceError(f"Expected model output of shape (1, 1, H, W), got {raw.shape}")
    if raw.shape[2] == 0 or raw.shape[3] == 0:
        raise InferenceError(f"Model output has zero size: {raw.shape}")

    grid = raw[0, 0].astype(np.float32)
    alpha = upsample_nearest(grid, original_size)

    alpha = np.nan_to_num(alpha, nan=0.0)
    return np.clip(alpha, 0.0, 1.0).astype(np.float32)


def alpha_to_mask(alpha: np.ndarray) -> np.ndarray:
    """Convert an alpha map to an 8-bit single-channel mask (round(alpha * 255))."""
    return alpha_to_bytes(alpha)


def composite(
    source: Optional[ImageLike],
    alpha: np.ndarray,
    profile: ModelProfile
) -> np.ndarray:
    """
    Merge source colors with an alpha map into an RGBA image.

    Under a continuous policy alpha passes through as a soft matte. Under a
    thresholded policy alpha strictly above the threshold is opaque. With no
    source, a thresholded profile yields a white silhouette.

    Raises:
        InvalidInputError: If source is None under a continuous policy.
        DimensionMismatchError: If source and alpha sizes differ.
    """
    if source is not None:
        source = as_image_array(source)

    threshold = None
    if isinstance(profile.output_policy, Thresholded):
        threshold = profile.output_policy.threshold

    return apply_alpha_to_image(source, alpha, threshold=threshold)
