from __future__ import annotations

import threading
from typing import Optional

import numpy as np


class FrameCaptureBuffer:
    """
    Single-slot hand-off of the latest BGRA frame.

    ``publish`` overwrites whatever is in the slot, so a frame that was never
    consumed is dropped. Both sides copy under the lock, which keeps the
    snapshot complete even if the producer reuses its pixel buffer.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._frame: Optional[np.ndarray] = None

    def publish(self, frame: np.ndarray) -> None:
        if frame.ndim != 3 or frame.shape[2] != 4 or frame.dtype != np.uint8:
            raise ValueError(f"Expected a BGRA uint8 frame, got shape {frame.shape} dtype {frame.dtype}.")
        if frame.shape[0] == 0 or frame.shape[1] == 0:
            raise ValueError("Cannot publish an empty frame.")
        copy = np.array(frame, copy=True)
        with self._lock:
            self._frame = copy

    def take_snapshot(self) -> Optional[np.ndarray]:
        with self._lock:
            if self._frame is None:
                return None
            return self._frame.copy()

    def clear(self) -> None:
        with self._lock:
            self._frame = None
