"""Shared fixtures: a deterministic in-memory inference adapter."""

import sys
from pathlib import Path

import numpy as np
import pytest

# Add src to path
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from portrait_matte.engine.model_loader import ModelMetadata, SessionHandle
from portrait_matte.errors import InferenceError, ModelLoadError


def red_channel_alpha(tensor):
    """Alpha = red channel of a signed-unit tensor mapped back to [0, 1]."""
    return ((tensor[:, :1, :, :] + 1.0) / 2.0).astype(np.float32)


class FakeAdapter:
    """
    In-memory stand-in for the ONNX Runtime adapter.

    Records every call so tests can check what the pipeline asked for.
    """

    def __init__(self, output_fn=red_channel_alpha, input_shape=None, fail_load=False, fail_run=False):
        self.output_fn = output_fn
        self.input_shape = input_shape
        self.fail_load = fail_load
        self.fail_run = fail_run
        self.loaded = []
        self.released = []
        self.run_inputs = []

    def load(self, model_path, providers=None):
        if self.fail_load:
            raise ModelLoadError(f"Model not found: {model_path}")
        handle = SessionHandle(
            model_path=Path(model_path),
            session=object(),
            metadata=ModelMetadata("input", "output", self.input_shape),
            providers=list(providers or ["CPUExecutionProvider"]),
        )
        self.loaded.append(handle)
        return handle

    def metadata(self, handle):
        return handle.metadata

    def run(self, handle, tensor):
        if handle.released:
            raise InferenceError("Session has been released")
        self.run_inputs.append(tensor.copy())
        if self.fail_run:
            raise InferenceError("Inference failed: simulated")
        return self.output_fn(tensor)

    def release(self, handle):
        if handle.session is not None:
            handle.session = None
            self.released.append(handle)


@pytest.fixture
def fake_adapter():
    return FakeAdapter()


@pytest.fixture
def gradient_image():
    """Deterministic 60x80 RGBA test image."""
    h, w = 60, 80
    ys, xs = np.mgrid[0:h, 0:w]
    image = np.zeros((h, w, 4), dtype=np.uint8)
    image[:, :, 0] = (xs * 255 // (w - 1)).astype(np.uint8)
    image[:, :, 1] = (ys * 255 // (h - 1)).astype(np.uint8)
    image[:, :, 2] = 128
    image[:, :, 3] = 255
    return image
