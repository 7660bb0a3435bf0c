from __future__ import annotations

import numpy as np

from .base import SegmentationModel, min_max_normalize

__all__ = ["TCMonoDepth"]


class TCMonoDepth(SegmentationModel):
    """
    Monocular depth network used as an experimental segmentation source.

    Relative inverse depth is stretched to [0, 1] per frame, so near objects
    read as foreground.
    """

    MODEL_NAME = "tcmonodepth"
    MODEL_FILE = "tcmonodepth_tcsmallnet_192x320.onnx"

    def extract_output(self) -> np.ndarray:
        output = self.output_values[0]
        # Some exports drop the channel axis: (N, H, W).
        if output.ndim == 3:
            return output[0]
        return output[0, 0]

    def postprocess(self, raw: np.ndarray) -> np.ndarray:
        return min_max_normalize(raw)
