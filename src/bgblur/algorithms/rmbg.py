from __future__ import annotations

import numpy as np

from .base import SegmentationModel, min_max_normalize

__all__ = ["RMBGSegmentation"]


class RMBGSegmentation(SegmentationModel):
    MODEL_NAME = "rmbg-1.4"
    MODEL_FILE = "bria_rmbg_1_4_qint8.onnx"
    NORMALIZE_MEAN = (0.5, 0.5, 0.5)

    def postprocess(self, raw: np.ndarray) -> np.ndarray:
        return min_max_normalize(raw)
