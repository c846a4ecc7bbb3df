"""Portrait alpha matting with ONNX models."""

from typing import Optional

from .engine import (
    AspectPreservingMultipleOf32,
    Continuous,
    FixedSize,
    InferenceAdapter,
    MattingPipeline,
    ModelProfile,
    Normalization,
    OnnxInferenceAdapter,
    PipelineState,
    Thresholded,
    get_profile,
)
from .errors import (
    DimensionMismatchError,
    InferenceError,
    InvalidInputError,
    MattingError,
    ModelLoadError,
    NotInitializedError,
    PipelineBusyError,
)
from .utils import ConfigManager, setup_logging

__version__ = "0.1.0"


def create_pipeline(
    config: Optional[ConfigManager] = None,
    adapter: Optional[InferenceAdapter] = None
) -> MattingPipeline:
    """
    Create and initialize a pipeline from saved settings.

    Logging is configured from the log_level setting before the model loads.

    Args:
        config: Settings to use. Defaults to the user's settings file.
        adapter: Inference adapter. Defaults to ONNX Runtime.

    Returns:
        The pipeline; check pipeline.is_ready to see whether the model loaded.
    """
    config = config or ConfigManager()
    setup_logging(config.get("log_level", "INFO"))
    return MattingPipeline(
        model_path=config.get("model_path"),
        profile=config.get_profile(),
        adapter=adapter,
        use_gpu=config.get("use_gpu", True),
    )


__all__ = [
    "AspectPreservingMultipleOf32",
    "Continuous",
    "FixedSize",
    "InferenceAdapter",
    "MattingPipeline",
    "ModelProfile",
    "Normalization",
    "OnnxInferenceAdapter",
    "PipelineState",
    "Thresholded",
    "get_profile",
    "DimensionMismatchError",
    "InferenceError",
    "InvalidInputError",
    "MattingError",
    "ModelLoadError",
    "NotInitializedError",
    "PipelineBusyError",
    "ConfigManager",
    "setup_logging",
    "create_pipeline",
]
