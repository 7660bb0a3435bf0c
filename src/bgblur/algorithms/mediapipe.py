from __future__ import annotations

import numpy as np

from .base import SegmentationModel
from .two_class import TwoClassSegmentation

__all__ = ["MediaPipeSegmentation", "SelfieSegmentation"]


class MediaPipeSegmentation(TwoClassSegmentation):
    MODEL_NAME = "mediapipe"
    MODEL_FILE = "mediapipe.onnx"
    LAYOUT = "NHWC"
    APPLY_SOFTMAX = True


class SelfieSegmentation(SegmentationModel):
    MODEL_NAME = "selfie-segmentation"
    MODEL_FILE = "selfie_segmentation.onnx"
    LAYOUT = "NHWC"

    def postprocess(self, raw: np.ndarray) -> np.ndarray:
        return np.clip(raw, 0.0, 1.0).astype(np.float32)
