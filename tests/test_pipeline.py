"""Tests for the MattingPipeline state machine using an in-memory adapter."""

import logging

import numpy as np
import pytest

from conftest import FakeAdapter
from portrait_matte import create_pipeline
from portrait_matte.engine.matting import MattingPipeline, PipelineState
from portrait_matte.engine.profiles import FixedSize, get_profile
from portrait_matte.errors import (
    InferenceError,
    InvalidInputError,
    NotInitializedError,
    PipelineBusyError,
)
from portrait_matte.utils.config import ConfigManager
from portrait_matte.utils.image_utils import to_rgba


def test_process_before_initialize_raises(fake_adapter, gradient_image):
    pipeline = MattingPipeline(adapter=fake_adapter)

    assert pipeline.state is PipelineState.UNINITIALIZED
    with pytest.raises(NotInitializedError):
        pipeline.process(gradient_image)
    assert fake_adapter.run_inputs == []


def test_failed_load_is_terminal_until_reinitialized(gradient_image):
    adapter = FakeAdapter(fail_load=True)
    pipeline = MattingPipeline("missing.onnx", adapter=adapter)

    assert pipeline.state is PipelineState.LOAD_FAILED
    assert not pipeline.is_ready
    for _ in range(2):
        with pytest.raises(NotInitializedError):
            pipeline.process(gradient_image)
    assert adapter.run_inputs == []

    adapter.fail_load = False
    assert pipeline.initialize("modnet.onnx")
    assert pipeline.state is PipelineState.READY
    assert pipeline.process(gradient_image) is not None


def test_process_preserves_dimensions(fake_adapter, gradient_image):
    pipeline = MattingPipeline("modnet.onnx", adapter=fake_adapter)

    result = pipeline.process(gradient_image)

    assert pipeline.state is PipelineState.READY
    assert result.shape == gradient_image.shape
    assert result.dtype == np.uint8
    assert pipeline.get_last_alpha().shape == gradient_image.shape[:2]
    assert pipeline.get_last_result() is result
    assert pipeline.last_error is None
    assert pipeline.last_inference_time is not None

    mask = pipeline.get_alpha_mask()
    assert mask.shape == gradient_image.shape[:2]
    assert mask.dtype == np.uint8
    np.testing.assert_array_equal(result[:, :, 3], mask)
    np.testing.assert_array_equal(result[:, :, :3], gradient_image[:, :, :3])


def test_tensor_follows_profile(fake_adapter, gradient_image):
    pipeline = MattingPipeline("modnet.onnx", profile=get_profile("modnet", ref_size=64), adapter=fake_adapter)
    pipeline.process(gradient_image)

    # 80x60 -> shorter side 64, longer int(80 / 60 * 64) = 85 -> 64
    assert fake_adapter.run_inputs[0].shape == (1, 3, 64, 64)


def test_alpha_is_clamped_for_wild_model_output(gradient_image):
    adapter = FakeAdapter(output_fn=lambda t: (t[:, :1] * 10.0).astype(np.float32))
    pipeline = MattingPipeline("modnet.onnx", adapter=adapter)

    pipeline.process(gradient_image)
    alpha = pipeline.get_last_alpha()

    assert alpha.min() >= 0.0
    assert alpha.max() <= 1.0


def test_repeated_process_is_byte_identical(fake_adapter, gradient_image):
    pipeline = MattingPipeline("modnet.onnx", adapter=fake_adapter)

    first = pipeline.process(gradient_image).copy()
    second = pipeline.process(gradient_image)

    assert first.tobytes() == second.tobytes()


def test_thresholded_pipeline_binarizes(gradient_image):
    adapter = FakeAdapter(output_fn=lambda t: t[:, :1].astype(np.float32))
    pipeline = MattingPipeline("pp.onnx", profile=get_profile("ppmatting"), adapter=adapter)

    result = pipeline.process(gradient_image)

    assert set(np.unique(result[:, :, 3])) <= {0, 255}
    # Red ramps left to right, so the right edge is above the threshold
    assert result[0, -1, 3] == 255
    assert result[0, 0, 3] == 0


def test_inference_failure_returns_source(gradient_image):
    adapter = FakeAdapter(fail_run=True)
    pipeline = MattingPipeline("modnet.onnx", adapter=adapter)

    result = pipeline.process(gradient_image)

    np.testing.assert_array_equal(result, to_rgba(gradient_image))
    assert isinstance(pipeline.last_error, InferenceError)
    assert pipeline.state is PipelineState.READY


def test_inference_failure_clears_previous_result(fake_adapter, gradient_image):
    pipeline = MattingPipeline("modnet.onnx", adapter=fake_adapter)
    assert pipeline.process(gradient_image) is not None
    assert pipeline.get_last_alpha() is not None

    fake_adapter.fail_run = True
    pipeline.process(gradient_image)

    assert isinstance(pipeline.last_error, InferenceError)
    assert pipeline.get_last_alpha() is None
    assert pipeline.get_last_result() is None
    assert pipeline.get_alpha_mask() is None


def test_bad_output_shape_returns_source(gradient_image):
    adapter = FakeAdapter(output_fn=lambda t: np.zeros((1, 3, 8, 8), dtype=np.float32))
    pipeline = MattingPipeline("modnet.onnx", adapter=adapter)

    result = pipeline.process(gradient_image)

    np.testing.assert_array_equal(result, to_rgba(gradient_image))
    assert isinstance(pipeline.last_error, InferenceError)


def test_invalid_image_returns_none(fake_adapter):
    pipeline = MattingPipeline("modnet.onnx", adapter=fake_adapter)

    assert pipeline.process(np.zeros((0, 0, 3), dtype=np.uint8)) is None
    assert isinstance(pipeline.last_error, InvalidInputError)
    assert fake_adapter.run_inputs == []

    assert pipeline.process(None) is None
    assert pipeline.state is PipelineState.READY


def test_process_alpha_raises(fake_adapter):
    pipeline = MattingPipeline("modnet.onnx", adapter=fake_adapter)

    with pytest.raises(InvalidInputError):
        pipeline.process_alpha(None)
    assert pipeline.state is PipelineState.READY


def test_fixed_input_shape_discovered_from_model(gradient_image):
    adapter = FakeAdapter(input_shape=(1, 3, 320, 256))
    pipeline = MattingPipeline("pp.onnx", profile=get_profile("ppmatting"), adapter=adapter)

    assert pipeline.profile.size_policy == FixedSize(256, 320)
    pipeline.process(gradient_image)
    assert adapter.run_inputs[0].shape == (1, 3, 320, 256)


def test_symbolic_input_shape_keeps_profile_size():
    adapter = FakeAdapter(input_shape=("batch", 3, "height", "width"))
    pipeline = MattingPipeline("pp.onnx", profile=get_profile("ppmatting"), adapter=adapter)

    assert pipeline.profile.size_policy == FixedSize(512, 512)


def test_shutdown_releases_handle(fake_adapter, gradient_image):
    pipeline = MattingPipeline("modnet.onnx", adapter=fake_adapter)
    pipeline.process(gradient_image)

    pipeline.shutdown()
    pipeline.shutdown()

    assert len(fake_adapter.released) == 1
    assert pipeline.get_last_alpha() is None
    assert pipeline.get_alpha_mask() is None
    assert pipeline.state is PipelineState.UNINITIALIZED
    with pytest.raises(NotInitializedError):
        pipeline.process(gradient_image)


def test_context_manager_releases_handle(fake_adapter, gradient_image):
    with MattingPipeline("modnet.onnx", adapter=fake_adapter, use_gpu=False) as pipeline:
        pipeline.process(gradient_image)
        assert pipeline.get_active_provider() == "CPUExecutionProvider"

    assert len(fake_adapter.released) == 1
    assert pipeline.get_active_provider() == "None"


def test_reinitialize_releases_previous_handle(fake_adapter):
    pipeline = MattingPipeline("a.onnx", adapter=fake_adapter)
    pipeline.initialize("b.onnx")

    assert len(fake_adapter.loaded) == 2
    assert fake_adapter.released == [fake_adapter.loaded[0]]


def test_overlapping_process_is_rejected(gradient_image):
    seen = []
    pipeline = None

    def reentrant(tensor):
        try:
            pipeline.process(gradient_image)
        except PipelineBusyError as e:
            seen.append(e)
        return ((tensor[:, :1] + 1.0) / 2.0).astype(np.float32)

    adapter = FakeAdapter(output_fn=reentrant)
    pipeline = MattingPipeline("modnet.onnx", adapter=adapter)

    result = pipeline.process(gradient_image)

    assert len(seen) == 1
    assert result.shape == gradient_image.shape
    assert len(adapter.run_inputs) == 1


def test_create_pipeline_from_config(tmp_path, fake_adapter):
    config = ConfigManager(tmp_path / "settings.json")
    config.update({"model_name": "ppmatting", "model_path": "pp.onnx", "threshold": 0.4})

    pipeline = create_pipeline(config, adapter=fake_adapter)

    assert pipeline.is_ready
    assert pipeline.profile.output_policy.threshold == 0.4
    assert fake_adapter.loaded[0].model_path.name == "pp.onnx"


def test_create_pipeline_applies_log_level(tmp_path, fake_adapter):
    config = ConfigManager(tmp_path / "settings.json")
    config.set("log_level", "DEBUG")

    logger = logging.getLogger("portrait_matte")
    try:
        create_pipeline(config, adapter=fake_adapter)
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1
    finally:
        for handler in logger.handlers[:]:
            logger.removeHandler(handler)
            handler.close()
        logger.setLevel(logging.NOTSET)
