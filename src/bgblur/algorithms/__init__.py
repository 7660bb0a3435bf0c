from .base import SegmentationModel
from .mediapipe import MediaPipeSegmentation, SelfieSegmentation
from .onnx_base import InferenceSessionManager
from .pphumanseg import PPHumanSegmentation
from .rmbg import RMBGSegmentation
from .rvm import RobustVideoMatting
from .sinet import SINetSegmentation
from .tcmonodepth import TCMonoDepth

__all__ = [
    "SegmentationModel",
    "InferenceSessionManager",
    "MediaPipeSegmentation",
    "SelfieSegmentation",
    "PPHumanSegmentation",
    "RobustVideoMatting",
    "RMBGSegmentation",
    "SINetSegmentation",
    "TCMonoDepth",
]
