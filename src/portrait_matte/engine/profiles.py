"""Model profiles describing how a matting network expects its input and output."""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Union


# Quality presets mapping to the reference size of aspect-preserving models
QUALITY_CONFIGS = {
    "standard": 256,
    "high": 512,
    "ultra": 1024,
}

DEFAULT_REF_SIZE = 512
DEFAULT_THRESHOLD = 0.65


@dataclass(frozen=True)
class FixedSize:
    """Resize to exactly (width, height), ignoring aspect ratio."""

    width: int
    height: int


@dataclass(frozen=True)
class AspectPreservingMultipleOf32:
    """Scale the shorter side to ref_size and floor both sides to a multiple of 32."""

    ref_size: int = DEFAULT_REF_SIZE


class Normalization(Enum):
    ZERO_TO_ONE = "zero_to_one"
    SIGNED_UNIT = "signed_unit"


@dataclass(frozen=True)
class Continuous:
    """Soft alpha passthrough."""


@dataclass(frozen=True)
class Thresholded:
    """Hard cutout: alpha strictly above threshold is opaque."""

    threshold: float = DEFAULT_THRESHOLD


SizePolicy = Union[FixedSize, AspectPreservingMultipleOf32]
OutputPolicy = Union[Continuous, Thresholded]


@dataclass(frozen=True)
class ModelProfile:
    """
    Configuration for a specific matting network.

    Attributes:
        name: Human readable profile name.
        size_policy: How the source is resized before inference.
        normalization: How 8-bit channel values are mapped to floats.
        output_policy: Whether the compositor keeps soft alpha or binarizes it.
        channel_order: Tensor channel order. Always planar RGB.
    """

    name: str
    size_policy: SizePolicy = field(default_factory=AspectPreservingMultipleOf32)
    normalization: Normalization = Normalization.SIGNED_UNIT
    output_policy: OutputPolicy = field(default_factory=Continuous)
    channel_order: str = "RGB"

    @property
    def is_thresholded(self) -> bool:
        return isinstance(self.output_policy, Thresholded)


# Known matting networks
PROFILE_REGISTRY = {
    "modnet": ModelProfile(
        name="modnet",
        size_policy=AspectPreservingMultipleOf32(DEFAULT_REF_SIZE),
        normalization=Normalization.SIGNED_UNIT,
        output_policy=Continuous(),
    ),
    "ppmatting": ModelProfile(
        name="ppmatting",
        size_policy=FixedSize(512, 512),
        normalization=Normalization.ZERO_TO_ONE,
        output_policy=Thresholded(DEFAULT_THRESHOLD),
    ),
}


def get_profile(name: str, **overrides) -> ModelProfile:
    """
    Build a profile from the registry, applying optional overrides.

    Args:
        name: Registry key ("modnet", "ppmatting").
        **overrides: Any of ref_size, width, height, threshold.

    Returns:
        A new ModelProfile.

    Raises:
        KeyError: If name is not in the registry or an override is unknown.
    """
    if name not in PROFILE_REGISTRY:
        raise KeyError(f"Unknown profile: {name}. Available: {list(PROFILE_REGISTRY.keys())}")

    profile = PROFILE_REGISTRY[name]
    unknown = set(overrides) - {"ref_size", "width", "height", "threshold"}
    if unknown:
        raise KeyError(f"Unknown profile overrides: {sorted(unknown)}")

    size_policy = profile.size_policy
    if isinstance(size_policy, AspectPreservingMultipleOf32) and "ref_size" in overrides:
        size_policy = AspectPreservingMultipleOf32(int(overrides["ref_size"]))
    elif isinstance(size_policy, FixedSize) and ("width" in overrides or "height" in overrides):
        size_policy = FixedSize(
            int(overrides.get("width", size_policy.width)),
            int(overrides.get("height", size_policy.height)),
        )

    output_policy = profile.output_policy
    if isinstance(output_policy, Thresholded) and "threshold" in overrides:
        output_policy = Thresholded(float(overrides["threshold"]))

    return replace(profile, size_policy=size_policy, output_policy=output_policy)


def with_quality(profile: ModelProfile, quality: str) -> ModelProfile:
    """
    Return a profile whose reference size follows a quality preset.

    Fixed-size profiles are returned unchanged since the network dictates their input.

    Raises:
        ValueError: If quality preset is invalid.
    """
    if quality not in QUALITY_CONFIGS:
        raise ValueError(f"Invalid quality: {quality}. Options: {list(QUALITY_CONFIGS.keys())}")

    if not isinstance(profile.size_policy, AspectPreservingMultipleOf32):
        return profile

    resolution = QUALITY_CONFIGS[quality]
    return replace(profile, size_policy=AspectPreservingMultipleOf32(resolution))
