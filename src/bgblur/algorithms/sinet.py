from __future__ import annotations

from .two_class import TwoClassSegmentation

__all__ = ["SINetSegmentation"]


class SINetSegmentation(TwoClassSegmentation):
    MODEL_NAME = "sinet"
    MODEL_FILE = "SINet_Softmax_simple.onnx"
    NORMALIZE_MEAN = (0.485, 0.456, 0.406)
    NORMALIZE_STD = (0.229, 0.224, 0.225)
