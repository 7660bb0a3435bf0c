from __future__ import annotations

from typing import Optional

import cv2
import numpy as np

from .settings import Settings


class FrameScheduler:
    """Decides on each tick whether the segmentation model runs."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or Settings()
        self.counter = 0
        self.previous_frame: Optional[np.ndarray] = None

    def configure(self, settings: Settings) -> None:
        self.settings = settings
        self.counter = 0

    def is_similar(self, frame: np.ndarray) -> bool:
        """
        PSNR check against the previous frame.

        The previous frame is replaced by ``frame`` on every call, whether or
        not the two frames were similar.
        """
        previous = self.previous_frame
        self.previous_frame = frame
        if previous is None or previous.shape != frame.shape:
            return False
        return cv2.PSNR(previous, frame) > self.settings.image_similarity_threshold

    def advance(self) -> bool:
        self.counter = (self.counter + 1) % self.settings.mask_every_x_frames
        return self.counter == 0

    def should_run(self, frame: np.ndarray) -> bool:
        if self.settings.enable_image_similarity and self.is_similar(frame):
            return False
        return self.advance()

    def reset(self) -> None:
        self.counter = 0
        self.previous_frame = None
