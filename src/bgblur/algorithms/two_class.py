from __future__ import annotations

from typing import Any, ClassVar, List, Tuple

import numpy as np

from ..errors import InvalidShapeError
from .base import Dims, SegmentationModel


class TwoClassSegmentation(SegmentationModel):
    """
    Networks that emit a background channel and a foreground channel.

    ``extract_output`` returns both channels stacked as ``(2, H, W)``; the
    foreground probability is channel 1.
    """

    APPLY_SOFTMAX: ClassVar[bool] = False

    def input_output_shapes(self, session: Any) -> Tuple[List[Dims], List[Dims]]:
        inputs, outputs = super().input_output_shapes(session)
        dims = outputs[0]
        channels = None
        if len(dims) == 4:
            channels = dims[-1] if self.LAYOUT == "NHWC" else dims[1]
        if channels != 2:
            raise InvalidShapeError(
                f"{self.MODEL_NAME}: expected a two-channel output, got {dims}."
            )
        return inputs, outputs

    def extract_output(self) -> np.ndarray:
        output = self.output_values[0]
        if self.LAYOUT == "NHWC":
            return np.moveaxis(output[0], -1, 0)
        return output[0]

    def postprocess(self, raw: np.ndarray) -> np.ndarray:
        if self.APPLY_SOFTMAX:
            shifted = raw - raw.max(axis=0, keepdims=True)
            exp = np.exp(shifted)
            raw = exp / exp.sum(axis=0, keepdims=True)
        return np.clip(raw[1], 0.0, 1.0).astype(np.float32)
