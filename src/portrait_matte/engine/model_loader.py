"""Model path resolution and ONNX Runtime session management."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional, Protocol, Sequence, Tuple, Union

import numpy as np

try:
    import onnxruntime as ort
except ImportError:
    ort = None

from ..errors import InferenceError, ModelLoadError
from ..utils.paths import get_models_dir


logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES = {".onnx", ".ort"}


@dataclass(frozen=True)
class ModelMetadata:
    """Input/output description of a loaded model."""

    input_name: str
    output_name: str
    input_shape: Optional[Tuple[Any, ...]] = None


@dataclass
class SessionHandle:
    """A loaded model. Owned by exactly one pipeline."""

    model_path: Path
    session: Any
    metadata: ModelMetadata
    providers: List[str] = field(default_factory=list)

    @property
    def released(self) -> bool:
        return self.session is None


class InferenceAdapter(Protocol):
    """Interface the pipeline uses to talk to an inference runtime."""

    def load(self, model_path: Union[str, Path], providers: Optional[Sequence[str]] = None) -> SessionHandle:
        ...

    def metadata(self, handle: SessionHandle) -> ModelMetadata:
        ...

    def run(self, handle: SessionHandle, tensor: np.ndarray) -> np.ndarray:
        ...

    def release(self, handle: SessionHandle) -> None:
        ...


def get_available_providers() -> List[str]:
    """Get list of available ONNX execution providers."""
    if ort is None:
        return []
    return ort.get_available_providers()


def select_providers(use_gpu: bool = True, available: Optional[Sequence[str]] = None) -> List[str]:
    """
    Pick execution providers in preference order.

    CUDA is tried first, then DirectML on Windows; CPU is always the fallback.
    """
    if available is None:
        available = get_available_providers()

    providers = []
    if use_gpu:
        if "CUDAExecutionProvider" in available:
            providers.append("CUDAExecutionProvider")
        elif "DmlExecutionProvider" in available:
            providers.append("DmlExecutionProvider")
    providers.append("CPUExecutionProvider")
    return providers


def resolve_model_path(model_path: Union[str, Path], models_dir: Optional[Path] = None) -> Path:
    """
    Resolve a model path.

    Existing paths are returned as-is; relative paths that do not exist are
    looked up in the models directory.

    Raises:
        ModelLoadError: If the model file cannot be found or has an unsupported format.
    """
    path = Path(model_path)

    if not path.exists() and not path.is_absolute():
        path = (models_dir or get_models_dir()) / path

    if not path.is_file():
        raise ModelLoadError(f"Model not found: {model_path}")

    if path.suffix.lower() not in SUPPORTED_SUFFIXES:
        raise ModelLoadError(
            f"Unsupported model format: {path.suffix}. Supported: {sorted(SUPPORTED_SUFFIXES)}"
        )

    return path


def fixed_input_size(input_shape: Optional[Sequence[Any]]) -> Optional[Tuple[int, int]]:
    """
    Get the static spatial size (W, H) of an NCHW input shape.

    Returns None when the shape is unknown or its spatial dims are symbolic.
    """
    if input_shape is None or len(input_shape) != 4:
        return None

    height, width = input_shape[2], input_shape[3]
    if not isinstance(height, int) or not isinstance(width, int):
        return None
    if height <= 0 or width <= 0:
        return None
    return width, height


class OnnxInferenceAdapter:
    """
    Inference adapter backed by ONNX Runtime.

    Example:
        adapter = OnnxInferenceAdapter()
        handle = adapter.load("modnet.onnx")
        alpha = adapter.run(handle, tensor)
        adapter.release(handle)
    """

    def __init__(self, use_gpu: bool = True, models_dir: Optional[Path] = None):
        """
        Args:
            use_gpu: Whether to attempt GPU acceleration when no providers are given.
            models_dir: Directory searched for relative model paths.
        """
        self.use_gpu = use_gpu
        self.models_dir = models_dir

    def load(
        self,
        model_path: Union[str, Path],
        providers: Optional[Sequence[str]] = None
    ) -> SessionHandle:
        """
        Load the ONNX model and create an inference session.

        Raises:
            ModelLoadError: If onnxruntime is missing, the file is missing or
                            the session cannot be created.
        """
        if ort is None:
            raise ModelLoadError(
                "onnxruntime is required. Install with: pip install onnxruntime"
            )

        path = resolve_model_path(model_path, self.models_dir)

        logger.debug("Available providers: %s", ", ".join(get_available_providers()))
        if providers is None:
            providers = select_providers(self.use_gpu)

        # Configure session options
        sess_options = ort.SessionOptions()
        sess_options.graph_optimization_level = ort.GraphOptimizationLevel.ORT_ENABLE_ALL

        try:
            session = ort.InferenceSession(
                str(path),
                sess_options=sess_options,
                providers=list(providers)
            )
        except Exception as e:
            raise ModelLoadError(f"Failed to load model {path}: {e}") from e

        inputs = session.get_inputs()
        outputs = session.get_outputs()
        if not inputs or not outputs:
            raise ModelLoadError(f"Model {path} has no inputs or outputs")

        metadata = ModelMetadata(
            input_name=inputs[0].name,
            output_name=outputs[0].name,
            input_shape=tuple(inputs[0].shape) if inputs[0].shape is not None else None,
        )

        active_provider = session.get_providers()[0]
        logger.info("Loaded %s with %s", path.name, active_provider)
        logger.info(
            "Input: %s %s, output: %s",
            metadata.input_name, metadata.input_shape, metadata.output_name
        )

        return SessionHandle(
            model_path=path,
            session=session,
            metadata=metadata,
            providers=list(session.get_providers()),
        )

    def metadata(self, handle: SessionHandle) -> ModelMetadata:
        return handle.metadata

    def run(self, handle: SessionHandle, tensor: np.ndarray) -> np.ndarray:
        """
        Run the model on a single input tensor and return its first output.

        Raises:
            InferenceError: If the handle was released or the runtime fails.
        """
        if handle.released:
            raise InferenceError("Session has been released")

        try:
            outputs = handle.session.run(
                [handle.metadata.output_name],
                {handle.metadata.input_name: tensor}
            )
        except Exception as e:
            raise InferenceError(f"Inference failed: {e}") from e

        return np.asarray(outputs[0], dtype=np.float32)

    def release(self, handle: SessionHandle) -> None:
        """Drop the native session. Safe to call more than once."""
        if handle.session is not None:
            logger.debug("Releasing session for %s", handle.model_path.name)
            handle.session = None
