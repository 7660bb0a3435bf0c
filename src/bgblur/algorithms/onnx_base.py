from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import onnxruntime as ort

from ..errors import (
    BackgroundFilterError,
    InferenceRuntimeError,
    ModelFileNotFound,
    SessionCreateError,
    SessionResult,
)
from ..settings import Device
from .base import SegmentationModel

logger = logging.getLogger(__name__)

PRIMARY_PROVIDER: Dict[Device, str] = {
    Device.CPU: "CPUExecutionProvider",
    Device.DML: "DmlExecutionProvider",
    Device.CUDA: "CUDAExecutionProvider",
    Device.TENSORRT: "TensorrtExecutionProvider",
    Device.COREML: "CoreMLExecutionProvider",
}


def build_providers(device: Device, device_id: int = 0) -> List[Tuple[str, Dict[str, Any]]]:
    if device is Device.CPU:
        return [("CPUExecutionProvider", {})]
    if device is Device.DML:
        return [("DmlExecutionProvider", {"device_id": device_id})]
    if device is Device.COREML:
        return [("CoreMLExecutionProvider", {})]

    cuda_options = {
        "device_id": device_id,
        "arena_extend_strategy": "kNextPowerOfTwo",
        "cudnn_conv_use_max_workspace": "1",
        "do_copy_in_default_stream": "1",
    }
    providers: List[Tuple[str, Dict[str, Any]]] = [("CUDAExecutionProvider", cuda_options)]
    if device is Device.TENSORRT:
        trt_options = {
            "device_id": device_id,
            "trt_fp16_enable": "True",
            "trt_max_workspace_size": str(1 << 30),
        }
        providers.insert(0, ("TensorrtExecutionProvider", trt_options))
    return providers


def build_session_options(device: Device, num_threads: int) -> ort.SessionOptions:
    session_options = ort.SessionOptions()
    session_options.graph_optimization_level = ort.GraphOptimizationLevel.ORT_ENABLE_ALL
    session_options.log_severity_level = 3
    if device is Device.CPU:
        session_options.inter_op_num_threads = num_threads
        session_options.intra_op_num_threads = num_threads
    else:
        # DirectML needs memory patterns off and sequential execution.
        session_options.enable_mem_pattern = False
        session_options.execution_mode = ort.ExecutionMode.ORT_SEQUENTIAL
    return session_options


class InferenceSessionManager:
    """
    Owns the onnxruntime session bound to exactly one :class:`SegmentationModel`.

    The adapter and the session are created, used and released together.
    """

    def __init__(self, model: SegmentationModel) -> None:
        self.model = model
        self.session: Optional[ort.InferenceSession] = None

    @property
    def ready(self) -> bool:
        return self.session is not None

    def rebuild(self, model_path: Path, device: Device, num_threads: int) -> SessionResult:
        """
        Build a fresh session and size the adapter's buffers for it.

        Never raises for construction problems: the failure comes back as the
        ``error`` of the returned :class:`SessionResult`. There is no retry.
        """
        self.close()
        try:
            self.session = self._create_session(model_path, device, num_threads)
            self._bind_model()
        except BackgroundFilterError as exc:
            self.close()
            return SessionResult(error=exc)
        return SessionResult(manager=self)

    def _bind_model(self) -> None:
        model = self.model
        try:
            model.input_output_names(self.session)
            model.input_output_shapes(self.session)
            model.allocate_tensor_buffers()
        except BackgroundFilterError:
            raise
        except Exception as exc:
            raise SessionCreateError(
                f"Could not bind {model.MODEL_NAME} to the session: {exc}"
            ) from exc
        self._log_shapes()

    def _create_session(
        self, model_path: Path, device: Device, num_threads: int
    ) -> ort.InferenceSession:
        model_path = Path(model_path)
        if not model_path.is_file():
            raise ModelFileNotFound(f"Model file {model_path} does not exist.")

        providers = build_providers(device)
        provider_names = [name for name, _ in providers]
        provider_options = [options for _, options in providers]
        try:
            session = ort.InferenceSession(
                model_path.as_posix(),
                sess_options=build_session_options(device, num_threads),
                providers=provider_names,
                provider_options=provider_options,
            )
        except Exception as exc:
            raise SessionCreateError(f"Could not create session for {model_path}: {exc}") from exc

        primary = PRIMARY_PROVIDER[device]
        if primary not in session.get_providers():
            raise SessionCreateError(
                f"onnxruntime did not initialize {primary} (active: {session.get_providers()})."
            )
        return session

    def _log_shapes(self) -> None:
        model = self.model
        for index, (name, dims) in enumerate(zip(model.input_names, model.input_dims)):
            logger.info("Model %s input %d: name %s shape %s", model.MODEL_NAME, index, name, dims)
        for index, (name, dims) in enumerate(zip(model.output_names, model.output_dims)):
            logger.info("Model %s output %d: name %s shape %s", model.MODEL_NAME, index, name, dims)

    def run(self, frame: np.ndarray) -> np.ndarray:
        """
        Run one inference step on a BGRA frame.

        Returns the foreground map at network resolution as ``uint8`` in
        [0, 255]. Any failure inside the step is raised as
        :class:`InferenceRuntimeError`.
        """
        if self.session is None:
            raise InferenceRuntimeError("Session is not initialized.")

        model = self.model
        try:
            prepared = model.prepare(frame)
            model.load_into_tensor(prepared)
            model.run_inference(self.session)
            raw = np.array(model.extract_output(), dtype=np.float32, copy=True)
            model.feedback_state()
            output = model.postprocess(raw)
        except Exception as exc:
            raise InferenceRuntimeError(f"{model.MODEL_NAME} inference failed: {exc}") from exc

        output = np.nan_to_num(output, nan=0.0, posinf=1.0, neginf=0.0)
        return np.clip(np.rint(output * 255.0), 0, 255).astype(np.uint8)

    def close(self) -> None:
        self.session = None
        self.model.release_buffers()
