from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Dict, Optional

import numpy as np

from .algorithms.base import SegmentationModel
from .algorithms.mediapipe import MediaPipeSegmentation, SelfieSegmentation
from .algorithms.onnx_base import InferenceSessionManager
from .algorithms.pphumanseg import PPHumanSegmentation
from .algorithms.rmbg import RMBGSegmentation
from .algorithms.rvm import RobustVideoMatting
from .algorithms.sinet import SINetSegmentation
from .algorithms.tcmonodepth import TCMonoDepth
from .capture import FrameCaptureBuffer
from .errors import BackgroundFilterError, InferenceRuntimeError
from .postprocess import MaskPostProcessor
from .scheduler import FrameScheduler
from .settings import ModelChoice, Settings

logger = logging.getLogger(__name__)

DEFAULT_MODELS_DIR = Path("~/.cache/bgblur/models").expanduser()

MODEL_REGISTRY: Dict[ModelChoice, type[SegmentationModel]] = {
    ModelChoice.FAST: MediaPipeSegmentation,
    ModelChoice.SELFIE: SelfieSegmentation,
    ModelChoice.BALANCED: PPHumanSegmentation,
    ModelChoice.GPU_MATTE: RobustVideoMatting,
    ModelChoice.SHARP_CUTOUT: RMBGSegmentation,
    ModelChoice.LEGACY: SINetSegmentation,
    ModelChoice.DEPTH_EXPERIMENTAL: TCMonoDepth,
}


class BackgroundFilter:
    """
    State of one background segmentation filter instance.

    The host drives it with :meth:`capture_frame` from its render step and
    :meth:`tick` once per output frame; :meth:`update_settings` may be called
    from another thread. While disabled, :meth:`current_mask` returns ``None``
    and the host passes frames through unmodified.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        models_dir: Path = DEFAULT_MODELS_DIR,
    ) -> None:
        self.models_dir = Path(models_dir).expanduser()
        self.settings: Optional[Settings] = None
        self.capture = FrameCaptureBuffer()
        self.scheduler = FrameScheduler()
        self.postprocessor = MaskPostProcessor()
        self.session_manager: Optional[InferenceSessionManager] = None
        self.last_error: Optional[BackgroundFilterError] = None
        self.disabled = True
        self._model_lock = threading.Lock()
        self._mask_lock = threading.Lock()
        self._mask: Optional[np.ndarray] = None
        self.update_settings(settings or Settings())

    @property
    def model(self) -> Optional[SegmentationModel]:
        manager = self.session_manager
        return manager.model if manager is not None else None

    def update_settings(self, settings: Settings) -> None:
        """
        Install a new settings snapshot.

        The model/session pair is rebuilt only when the model, device or
        thread count changed, or when no pair is active. A failed rebuild
        leaves the filter disabled until the next call.
        """
        previous = self.settings
        self.disabled = True
        self.settings = settings
        self.scheduler.configure(settings)

        if settings.rebuild_required(previous) or self.session_manager is None:
            with self._model_lock:
                self._release_session()
                self.postprocessor.reset()
                self.last_error = None
                manager = InferenceSessionManager(MODEL_REGISTRY[settings.model_select]())
                result = manager.rebuild(
                    manager.model.model_path(self.models_dir),
                    settings.use_gpu,
                    settings.num_threads,
                )
                if not result.ok:
                    self.last_error = result.error
                    logger.error(
                        "Failed to create ONNXRuntime session for '%s' (%s): %s",
                        settings.model_select.value,
                        result.error.kind.value,
                        result.error,
                    )
                    return
                self.session_manager = result.manager

        self.disabled = False

    def activate(self) -> None:
        if self.session_manager is None and self.settings is not None:
            self.update_settings(self.settings)

    def deactivate(self) -> None:
        with self._model_lock:
            self._release_session()
        self.disabled = True
        self.capture.clear()
        self.scheduler.reset()
        self.postprocessor.reset()
        with self._mask_lock:
            self._mask = None

    def destroy(self) -> None:
        self.deactivate()
        self.settings = None

    def _release_session(self) -> None:
        if self.session_manager is not None:
            self.session_manager.close()
            self.session_manager = None

    def capture_frame(self, frame: np.ndarray) -> None:
        self.capture.publish(frame)

    def current_mask(self) -> Optional[np.ndarray]:
        if self.disabled:
            return None
        with self._mask_lock:
            return self._mask

    def _publish_mask(self, mask: np.ndarray) -> None:
        with self._mask_lock:
            self._mask = mask

    def tick(self, enabled: bool = True) -> bool:
        """
        Process the latest captured frame.

        Returns ``True`` when a new mask was produced on this tick.
        """
        settings = self.settings
        if self.disabled or not enabled or settings is None or self.session_manager is None:
            return False

        frame = self.capture.take_snapshot()
        if frame is None:
            return False

        height, width = frame.shape[:2]
        with self._mask_lock:
            if self._mask is None or self._mask.shape != (height, width):
                self._mask = np.full((height, width), 255, dtype=np.uint8)

        if not self.scheduler.should_run(frame):
            return False

        # A rebuild resets the post-processor under this lock, so the temporal
        # state never mixes masks from two different models.
        with self._model_lock:
            manager = self.session_manager
            settings = self.settings
            if manager is None or settings is None:
                return False
            try:
                raw = manager.run(frame)
            except InferenceRuntimeError as exc:
                logger.error("Inference failed, keeping previous mask: %s", exc)
                return False
            mask = self.postprocessor.process(raw, (width, height), settings)

        self._publish_mask(mask)
        return True
