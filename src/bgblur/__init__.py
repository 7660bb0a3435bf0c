"""
Real-time background segmentation for live video filters.

This package turns BGRA frames into background alpha masks using swappable
ONNX segmentation backends, with frame skipping, similarity early exit and
temporal/contour mask shaping for the compositor to consume.
"""

from .pipeline import BackgroundFilter, MODEL_REGISTRY
from .settings import Device, ModelChoice, Settings

__all__ = ["BackgroundFilter", "MODEL_REGISTRY", "Device", "ModelChoice", "Settings"]
