"""Matting pipeline: preprocess, run the network, postprocess, composite."""

import logging
import threading
import time
from dataclasses import replace
from enum import Enum
from pathlib import Path
from typing import Optional, Sequence, Union

import numpy as np

from ..errors import MattingError, ModelLoadError, NotInitializedError, PipelineBusyError
from ..utils.image_utils import ImageLike, to_rgba
from .model_loader import (
    InferenceAdapter,
    OnnxInferenceAdapter,
    SessionHandle,
    fixed_input_size,
    select_providers,
)
from .processing import alpha_to_mask, composite, postprocess, preprocess
from .profiles import FixedSize, ModelProfile, get_profile


logger = logging.getLogger(__name__)


class PipelineState(Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    PROCESSING = "processing"
    LOAD_FAILED = "load_failed"


class MattingPipeline:
    """
    Portrait matting pipeline around a single loaded model.

    This pipeline handles:
    - Model loading and session lifetime
    - Image preprocessing and postprocessing
    - Alpha matte generation and compositing

    Calls must be serialized by the caller; overlapping process() calls are
    rejected with PipelineBusyError.

    Example:
        with MattingPipeline("modnet.onnx", profile=get_profile("modnet")) as pipeline:
            rgba = pipeline.process(image)
            mask = pipeline.get_alpha_mask()
    """

    def __init__(
        self,
        model_path: Optional[Union[str, Path]] = None,
        profile: Optional[ModelProfile] = None,
        adapter: Optional[InferenceAdapter] = None,
        use_gpu: bool = True,
        providers: Optional[Sequence[str]] = None
    ):
        """
        Initialize the pipeline.

        Args:
            model_path: Model to load right away. If None, call initialize() later.
            profile: Model profile. Defaults to the "modnet" preset.
            adapter: Inference adapter. Defaults to ONNX Runtime.
            use_gpu: Whether to attempt GPU acceleration.
            providers: Explicit execution providers, overriding use_gpu.
        """
        self.profile = profile or get_profile("modnet")
        self.adapter = adapter or OnnxInferenceAdapter(use_gpu=use_gpu)
        self.use_gpu = use_gpu
        self.providers = list(providers) if providers is not None else None
        self.state = PipelineState.UNINITIALIZED

        self._handle: Optional[SessionHandle] = None
        self._lock = threading.Lock()

        self.last_alpha: Optional[np.ndarray] = None
        self.last_result: Optional[np.ndarray] = None
        self.last_error: Optional[BaseException] = None
        self.last_inference_time: Optional[float] = None

        if model_path is not None:
            self.initialize(model_path)

    def __enter__(self) -> "MattingPipeline":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    @property
    def is_ready(self) -> bool:
        return self.state is PipelineState.READY

    def initialize(
        self,
        model_path: Union[str, Path],
        profile: Optional[ModelProfile] = None
    ) -> bool:
        """
        Load the model and prepare the pipeline for processing.

        For fixed-size profiles the model's static input shape, when present,
        replaces the profile's dimensions.

        Returns:
            True on success. On failure the pipeline is left in LOAD_FAILED and
            every process() call raises NotInitializedError.
        """
        if self.state is PipelineState.PROCESSING:
            raise PipelineBusyError("Cannot initialize while processing")

        self._release_handle()
        if profile is not None:
            self.profile = profile

        providers = self.providers
        if providers is None:
            providers = select_providers(self.use_gpu)

        try:
            handle = self.adapter.load(model_path, providers)
        except ModelLoadError:
            logger.exception("Model loading failed: %s", model_path)
            self.state = PipelineState.LOAD_FAILED
            return False

        self._handle = handle
        metadata = self.adapter.metadata(handle)

        if isinstance(self.profile.size_policy, FixedSize):
            size = fixed_input_size(metadata.input_shape)
            if size is not None:
                self.profile = replace(self.profile, size_policy=FixedSize(*size))
                logger.info("Using model input size %dx%d", *size)

        self.state = PipelineState.READY
        logger.info("Matting pipeline ready with profile '%s'", self.profile.name)
        return True

    def process(self, image: ImageLike) -> Optional[np.ndarray]:
        """
        Generate a matte for an image and composite it onto the source.

        Per-call failures are logged and stored in last_error; the unmodified
        source is returned as RGBA instead (or None if the source is unusable).
        A failed call also clears last_alpha and last_result.

        Args:
            image: Source image (H, W, 3|4) uint8 or a PIL image.

        Returns:
            RGBA image (H, W, 4) with the same size as the source.

        Raises:
            NotInitializedError: If no model has been loaded successfully.
            PipelineBusyError: If another call is in progress.
        """
        self._check_ready()
        if not self._lock.acquire(blocking=False):
            raise PipelineBusyError("process() is already running on this pipeline")

        self.state = PipelineState.PROCESSING
        try:
            alpha = self._run(image)
            result = composite(image, alpha, self.profile)
            self.last_result = result
            self.last_error = None
            return result
        except Exception as e:
            logger.exception("Matting failed, returning source image")
            self.last_error = e
            self.last_alpha = None
            self.last_result = None
            return self._fallback(image)
        finally:
            self.state = PipelineState.READY
            self._lock.release()

    def process_alpha(self, image: ImageLike) -> np.ndarray:
        """
        Generate the alpha matte only, raising on failure.

        Returns:
            Alpha map (H, W) float32 in [0, 1].
        """
        self._check_ready()
        if not self._lock.acquire(blocking=False):
            raise PipelineBusyError("process() is already running on this pipeline")

        self.state = PipelineState.PROCESSING
        try:
            return self._run(image)
        finally:
            self.state = PipelineState.READY
            self._lock.release()

    def get_last_alpha(self) -> Optional[np.ndarray]:
        return self.last_alpha

    def get_last_result(self) -> Optional[np.ndarray]:
        return self.last_result

    def get_alpha_mask(self) -> Optional[np.ndarray]:
        """Get the last alpha map as an 8-bit single-channel mask."""
        if self.last_alpha is None:
            return None
        return alpha_to_mask(self.last_alpha)

    def get_active_provider(self) -> str:
        """Get the currently active execution provider."""
        if self._handle is None or not self._handle.providers:
            return "None"
        return self._handle.providers[0]

    def shutdown(self) -> None:
        """Release the model and cached buffers."""
        self._release_handle()
        self.last_alpha = None
        self.last_result = None
        self.last_error = None
        self.state = PipelineState.UNINITIALIZED

    def _check_ready(self) -> None:
        if self.state is PipelineState.PROCESSING:
            raise PipelineBusyError("process() is already running on this pipeline")
        if self.state is not PipelineState.READY or self._handle is None:
            raise NotInitializedError(
                f"Model not loaded (state: {self.state.value}). Call initialize() first."
            )

    def _run(self, image: ImageLike) -> np.ndarray:
        start_time = time.perf_counter()

        prepared = preprocess(image, self.profile)
        original_size, tensor_size = prepared.original_size, prepared.resized_size
        try:
            raw = self.adapter.run(self._handle, prepared.tensor)
        finally:
            del prepared

        alpha = postprocess(raw, original_size, self.profile)
        del raw

        self.last_inference_time = time.perf_counter() - start_time
        logger.info(
            "Matting done in %.1fms (input %dx%d)",
            self.last_inference_time * 1000, *tensor_size
        )

        self.last_alpha = alpha
        return alpha

    def _fallback(self, image: ImageLike) -> Optional[np.ndarray]:
        try:
            return to_rgba(image)
        except MattingError:
            return None

    def _release_handle(self) -> None:
        if self._handle is not None:
            self.adapter.release(self._handle)
            self._handle = None
