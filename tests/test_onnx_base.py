"""Tests for session construction and provider selection."""

import numpy as np
import onnxruntime as ort
import pytest

from bgblur.algorithms import PPHumanSegmentation, SelfieSegmentation
from bgblur.algorithms.onnx_base import (
    InferenceSessionManager,
    build_providers,
    build_session_options,
)
from bgblur.errors import ErrorKind, InferenceRuntimeError
from bgblur.settings import Device
from helpers import FakeSession, make_frame, selfie_session


class TestSessionOptions:
    def test_cpu_sets_thread_counts(self):
        options = build_session_options(Device.CPU, 4)
        assert options.intra_op_num_threads == 4
        assert options.inter_op_num_threads == 4
        assert options.graph_optimization_level == ort.GraphOptimizationLevel.ORT_ENABLE_ALL

    @pytest.mark.parametrize("device", [Device.DML, Device.CUDA, Device.TENSORRT, Device.COREML])
    def test_accelerated_devices_run_sequentially(self, device):
        options = build_session_options(device, 4)
        assert options.enable_mem_pattern is False
        assert options.execution_mode == ort.ExecutionMode.ORT_SEQUENTIAL

    @pytest.mark.parametrize(
        "device, names",
        [
            (Device.CPU, ["CPUExecutionProvider"]),
            (Device.DML, ["DmlExecutionProvider"]),
            (Device.CUDA, ["CUDAExecutionProvider"]),
            (Device.TENSORRT, ["TensorrtExecutionProvider", "CUDAExecutionProvider"]),
            (Device.COREML, ["CoreMLExecutionProvider"]),
        ],
    )
    def test_provider_mapping(self, device, names):
        assert [name for name, _ in build_providers(device)] == names


class TestRebuild:
    def test_success_allocates_buffers(self, install_session, models_dir):
        created = install_session(selfie_session)
        manager = InferenceSessionManager(SelfieSegmentation())

        result = manager.rebuild(SelfieSegmentation.model_path(models_dir), Device.CPU, 2)

        assert result.ok
        assert result.manager is manager
        assert created[0].requested_providers == ["CPUExecutionProvider"]
        assert manager.model.input_values[0].shape == (1, 16, 16, 3)
        assert manager.model.output_values[0].shape == (1, 16, 16, 1)

    def test_missing_file(self, install_session, tmp_path):
        created = install_session(selfie_session)
        manager = InferenceSessionManager(SelfieSegmentation())

        result = manager.rebuild(tmp_path / "missing.onnx", Device.CPU, 1)

        assert not result.ok
        assert result.error.kind is ErrorKind.MODEL_FILE_NOT_FOUND
        assert created == []
        assert not manager.ready

    def test_construction_failure(self, install_session, models_dir):
        def broken():
            raise RuntimeError("invalid graph")

        install_session(broken)
        manager = InferenceSessionManager(SelfieSegmentation())

        result = manager.rebuild(SelfieSegmentation.model_path(models_dir), Device.CPU, 1)

        assert result.error.kind is ErrorKind.SESSION_CREATE
        assert "invalid graph" in str(result.error)

    def test_unavailable_provider(self, install_session, models_dir):
        def cpu_only():
            session = selfie_session()
            session.active_providers = ["CPUExecutionProvider"]
            return session

        install_session(cpu_only)
        manager = InferenceSessionManager(SelfieSegmentation())

        result = manager.rebuild(SelfieSegmentation.model_path(models_dir), Device.CUDA, 1)

        assert result.error.kind is ErrorKind.SESSION_CREATE
        assert not manager.ready

    def test_invalid_shape(self, install_session, models_dir):
        install_session(
            lambda: FakeSession([("x", [1, "h", "w", 3])], [("y", [1, "h", "w", 1])], lambda feeds: [])
        )
        manager = InferenceSessionManager(SelfieSegmentation())

        result = manager.rebuild(SelfieSegmentation.model_path(models_dir), Device.CPU, 1)

        assert result.error.kind is ErrorKind.INVALID_SHAPE
        assert manager.model.input_values == []

    def test_single_channel_output_for_two_class_model(self, install_session, models_dir):
        install_session(
            lambda: FakeSession([("x", [1, 3, 8, 8])], [("y", [1, 1, 8, 8])], lambda feeds: [])
        )
        manager = InferenceSessionManager(PPHumanSegmentation())

        result = manager.rebuild(PPHumanSegmentation.model_path(models_dir), Device.CPU, 1)

        assert result.error.kind is ErrorKind.INVALID_SHAPE
        assert not manager.ready

    def test_adapter_failure_becomes_session_error(self, install_session, models_dir, monkeypatch):
        install_session(selfie_session)
        model = SelfieSegmentation()

        def out_of_memory():
            raise MemoryError("buffer allocation failed")

        monkeypatch.setattr(model, "allocate_tensor_buffers", out_of_memory)
        manager = InferenceSessionManager(model)

        result = manager.rebuild(SelfieSegmentation.model_path(models_dir), Device.CPU, 1)

        assert result.error.kind is ErrorKind.SESSION_CREATE
        assert "buffer allocation failed" in str(result.error)
        assert not manager.ready


class TestRun:
    def test_returns_uint8_network_resolution(self, install_session, models_dir):
        install_session(lambda: selfie_session(value=0.5))
        manager = InferenceSessionManager(SelfieSegmentation())
        manager.rebuild(SelfieSegmentation.model_path(models_dir), Device.CPU, 1)

        output = manager.run(make_frame(64, 48))

        assert output.shape == (16, 16)
        assert output.dtype == np.uint8
        assert np.all(output == 128)

    def test_runtime_failure_is_wrapped(self, install_session, models_dir):
        install_session(lambda: selfie_session(fail_on_call=1))
        manager = InferenceSessionManager(SelfieSegmentation())
        manager.rebuild(SelfieSegmentation.model_path(models_dir), Device.CPU, 1)

        with pytest.raises(InferenceRuntimeError) as excinfo:
            manager.run(make_frame())

        assert excinfo.value.kind is ErrorKind.INFERENCE_RUNTIME
        assert not excinfo.value.kind.terminal

    def test_run_without_session(self):
        with pytest.raises(InferenceRuntimeError):
            InferenceSessionManager(SelfieSegmentation()).run(make_frame())

    def test_close_releases_buffers(self, install_session, models_dir):
        install_session(selfie_session)
        manager = InferenceSessionManager(SelfieSegmentation())
        manager.rebuild(SelfieSegmentation.model_path(models_dir), Device.CPU, 1)

        manager.close()

        assert manager.session is None
        assert manager.model.input_values == []
