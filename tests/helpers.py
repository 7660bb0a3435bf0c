"""Shared test helpers: a fake onnxruntime session and frame builders."""

from __future__ import annotations

from typing import Callable, List, Optional, Sequence

import numpy as np


class FakeNode:
    def __init__(self, name: str, shape: Sequence) -> None:
        self.name = name
        self.shape = list(shape)
        self.type = "tensor(float)"


class FakeSession:
    """Stands in for ``onnxruntime.InferenceSession``."""

    def __init__(
        self,
        inputs: Sequence[tuple],
        outputs: Sequence[tuple],
        compute: Callable[[dict], List[np.ndarray]],
        active_providers: Optional[List[str]] = None,
    ) -> None:
        self._inputs = [FakeNode(name, shape) for name, shape in inputs]
        self._outputs = [FakeNode(name, shape) for name, shape in outputs]
        self._compute = compute
        self.active_providers = active_providers
        self.calls = 0
        self.path = None
        self.sess_options = None
        self.requested_providers: List[str] = []

    def get_inputs(self):
        return self._inputs

    def get_outputs(self):
        return self._outputs

    def get_providers(self):
        if self.active_providers is not None:
            return self.active_providers
        return self.requested_providers

    def run(self, output_names, feeds):
        self.calls += 1
        return self._compute(feeds)


def selfie_session(
    value: float = 0.9,
    size: int = 16,
    fail_on_call: Optional[int] = None,
    on_run: Optional[Callable[[], None]] = None,
) -> FakeSession:
    """NHWC single-channel session returning a uniform foreground score.

    ``on_run`` is called at the start of every inference, before the result
    is computed.
    """
    state = {"calls": 0}

    def compute(feeds):
        state["calls"] += 1
        if on_run is not None:
            on_run()
        if fail_on_call is not None and state["calls"] == fail_on_call:
            raise RuntimeError("simulated onnxruntime failure")
        return [np.full((1, size, size, 1), value, dtype=np.float32)]

    return FakeSession(
        inputs=[("input_1", ["N", size, size, 3])],
        outputs=[("output", [-1, size, size, 1])],
        compute=compute,
    )


def make_frame(width: int = 32, height: int = 24, value: int = 0) -> np.ndarray:
    return np.full((height, width, 4), value, dtype=np.uint8)
