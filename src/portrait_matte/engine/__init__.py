"""Core inference pipeline for portrait matting."""

from .matting import MattingPipeline, PipelineState
from .model_loader import InferenceAdapter, ModelMetadata, OnnxInferenceAdapter, SessionHandle
from .processing import PreprocessResult, alpha_to_mask, composite, postprocess, preprocess
from .profiles import (
    AspectPreservingMultipleOf32,
    Continuous,
    FixedSize,
    ModelProfile,
    Normalization,
    Thresholded,
    get_profile,
    with_quality,
)

__all__ = [
    "MattingPipeline",
    "PipelineState",
    "InferenceAdapter",
    "ModelMetadata",
    "OnnxInferenceAdapter",
    "SessionHandle",
    "PreprocessResult",
    "alpha_to_mask",
    "composite",
    "postprocess",
    "preprocess",
    "AspectPreservingMultipleOf32",
    "Continuous",
    "FixedSize",
    "ModelProfile",
    "Normalization",
    "Thresholded",
    "get_profile",
    "with_quality",
]
