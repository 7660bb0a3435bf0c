from __future__ import annotations

from .two_class import TwoClassSegmentation

__all__ = ["PPHumanSegmentation"]


class PPHumanSegmentation(TwoClassSegmentation):
    MODEL_NAME = "pphumanseg"
    MODEL_FILE = "pphumanseg_fp32.onnx"
    NORMALIZE_MEAN = (0.5, 0.5, 0.5)
    NORMALIZE_STD = (0.5, 0.5, 0.5)
