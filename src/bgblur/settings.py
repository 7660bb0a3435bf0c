from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Type, TypeVar

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=enum.Enum)


class Device(str, enum.Enum):
    CPU = "cpu"
    DML = "dml"
    CUDA = "cuda"
    TENSORRT = "tensorrt"
    COREML = "coreml"


class ModelChoice(str, enum.Enum):
    FAST = "fast"
    SELFIE = "selfie"
    BALANCED = "balanced"
    GPU_MATTE = "gpu-matte"
    SHARP_CUTOUT = "sharp-cutout"
    LEGACY = "legacy"
    DEPTH_EXPERIMENTAL = "depth-experimental"


@dataclass(frozen=True)
class Settings:
    """
    Immutable snapshot of the user-configurable filter parameters.

    ``blur_background`` and the focal blur fields are not used by the mask
    pipeline itself; they travel with the snapshot for the compositor.
    """

    enable_threshold: bool = True
    threshold: float = 0.5
    contour_filter: float = 0.05
    smooth_contour: float = 0.5
    feather: float = 0.0
    mask_every_x_frames: int = 1
    blur_background: int = 0
    enable_focal_blur: bool = False
    blur_focus_point: float = 0.1
    blur_focus_depth: float = 0.1
    temporal_smooth_factor: float = 0.85
    enable_image_similarity: bool = True
    image_similarity_threshold: float = 35.0
    use_gpu: Device = Device.CPU
    model_select: ModelChoice = ModelChoice.FAST
    num_threads: int = 1

    def __post_init__(self) -> None:
        if self.mask_every_x_frames < 1:
            raise ValueError("mask_every_x_frames must be >= 1")
        if self.num_threads < 1:
            raise ValueError("num_threads must be >= 1")

    def rebuild_required(self, previous: "Settings | None") -> bool:
        """True when the model/session pair cannot be reused for this snapshot."""
        if previous is None:
            return True
        return (
            self.model_select != previous.model_select
            or self.use_gpu != previous.use_gpu
            or self.num_threads != previous.num_threads
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Settings":
        """Build a snapshot from the host's settings dictionary."""
        defaults = cls()

        def unit(key: str, default: float) -> float:
            return _clamp(float(data.get(key, default)), 0.0, 1.0)

        return cls(
            enable_threshold=_parse_bool(data, "enable_threshold", defaults.enable_threshold),
            threshold=unit("threshold", defaults.threshold),
            contour_filter=unit("contour_filter", defaults.contour_filter),
            smooth_contour=unit("smooth_contour", defaults.smooth_contour),
            feather=unit("feather", defaults.feather),
            mask_every_x_frames=max(
                1, int(data.get("mask_every_x_frames", defaults.mask_every_x_frames))
            ),
            blur_background=int(
                _clamp(int(data.get("blur_background", defaults.blur_background)), 0, 20)
            ),
            enable_focal_blur=_parse_bool(data, "enable_focal_blur", defaults.enable_focal_blur),
            blur_focus_point=float(data.get("blur_focus_point", defaults.blur_focus_point)),
            blur_focus_depth=float(data.get("blur_focus_depth", defaults.blur_focus_depth)),
            temporal_smooth_factor=unit(
                "temporal_smooth_factor", defaults.temporal_smooth_factor
            ),
            enable_image_similarity=_parse_bool(
                data, "enable_image_similarity", defaults.enable_image_similarity
            ),
            image_similarity_threshold=float(
                data.get("image_similarity_threshold", defaults.image_similarity_threshold)
            ),
            use_gpu=_parse_enum(Device, data.get("useGPU"), defaults.use_gpu),
            model_select=_parse_enum(ModelChoice, data.get("model_select"), defaults.model_select),
            num_threads=max(1, int(data.get("numThreads", defaults.num_threads))),
        )


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _parse_enum(enum_cls: Type[E], value: Any, default: E) -> E:
    if value is None:
        return default
    try:
        return enum_cls(value)
    except ValueError:
        logger.warning(
            "Unknown %s '%s'; using '%s'.", enum_cls.__name__, value, default.value
        )
        return default


_TRUE_STRINGS = {"1", "true", "yes", "on"}
_FALSE_STRINGS = {"0", "false", "no", "off", ""}


def _parse_bool(data: Mapping[str, Any], key: str, default: bool) -> bool:
    value = data.get(key, default)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
        logger.warning("Unrecognized boolean '%s' for %s; using %s.", value, key, default)
        return default
    return bool(value)
