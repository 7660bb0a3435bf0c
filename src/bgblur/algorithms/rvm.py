from __future__ import annotations

from typing import Any, ClassVar, Dict, List, Tuple

import numpy as np

from ..errors import InvalidShapeError
from .base import Dims, SegmentationModel

__all__ = ["RobustVideoMatting"]


class RobustVideoMatting(SegmentationModel):
    """
    Robust Video Matting (MobileNetV3), a recurrent matting network.

    The exported graph has dynamic spatial dimensions, so the input resolution
    is fixed here and the recurrent tensors are sized from it. ``r1o..r4o``
    are copied into ``r1i..r4i`` after every frame by :meth:`feedback_state`;
    skipping that call resets the temporal context to whatever the inputs
    last held.
    """

    MODEL_NAME = "rvm-mobilenetv3"
    MODEL_FILE = "rvm_mobilenetv3_fp32.onnx"
    INPUT_WIDTH: ClassVar[int] = 320
    INPUT_HEIGHT: ClassVar[int] = 192
    DOWNSAMPLE_RATIO: ClassVar[float] = 1.0
    # (channels, spatial divisor) of the recurrent states r1..r4.
    RECURRENT_LAYOUT: ClassVar[Tuple[Tuple[int, int], ...]] = ((16, 2), (20, 4), (40, 8), (64, 16))

    def _declared_dims(self) -> Dict[str, Dims]:
        h, w = self.INPUT_HEIGHT, self.INPUT_WIDTH
        dims: Dict[str, Dims] = {
            "src": [1, 3, h, w],
            "downsample_ratio": [1],
            "fgr": [1, 3, h, w],
            "pha": [1, 1, h, w],
        }
        for index, (channels, divisor) in enumerate(self.RECURRENT_LAYOUT, start=1):
            state = [1, channels, h // divisor, w // divisor]
            dims[f"r{index}i"] = state
            dims[f"r{index}o"] = list(state)
        return dims

    def _required_names(self) -> Tuple[List[str], List[str]]:
        count = len(self.RECURRENT_LAYOUT)
        inputs = ["src", "downsample_ratio"] + [f"r{index}i" for index in range(1, count + 1)]
        outputs = ["pha"] + [f"r{index}o" for index in range(1, count + 1)]
        return inputs, outputs

    def input_output_shapes(self, session: Any) -> Tuple[List[Dims], List[Dims]]:
        required_inputs, required_outputs = self._required_names()
        missing = [name for name in required_inputs if name not in self.input_names]
        missing += [name for name in required_outputs if name not in self.output_names]
        if missing:
            raise InvalidShapeError(f"{self.MODEL_NAME}: graph lacks tensors {missing}.")

        declared = self._declared_dims()
        try:
            self.input_dims = [list(declared[name]) for name in self.input_names]
            self.output_dims = [list(declared[name]) for name in self.output_names]
        except KeyError as exc:
            raise InvalidShapeError(f"{self.MODEL_NAME}: unexpected tensor {exc.args[0]!r}.") from exc
        return self.input_dims, self.output_dims

    def allocate_tensor_buffers(self) -> None:
        super().allocate_tensor_buffers()
        self.input_values[self.input_names.index("downsample_ratio")][...] = self.DOWNSAMPLE_RATIO

    def network_input_size(self) -> Tuple[int, int]:
        return self.INPUT_WIDTH, self.INPUT_HEIGHT

    def load_into_tensor(self, prepared) -> None:
        np.copyto(self.input_values[self.input_names.index("src")], prepared.contiguous().numpy())

    def extract_output(self) -> np.ndarray:
        return self.output_values[self.output_names.index("pha")][0, 0]

    def feedback_state(self) -> None:
        for index in range(1, len(self.RECURRENT_LAYOUT) + 1):
            source = self.output_values[self.output_names.index(f"r{index}o")]
            target = self.input_values[self.input_names.index(f"r{index}i")]
            np.copyto(target, source)

    def postprocess(self, raw: np.ndarray) -> np.ndarray:
        return np.clip(raw, 0.0, 1.0).astype(np.float32)
