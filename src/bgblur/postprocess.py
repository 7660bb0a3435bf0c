from __future__ import annotations

from typing import Optional, Tuple

import cv2
import numpy as np

from .settings import Settings


def odd_kernel_size(size: float) -> int:
    k_size = int(size)
    return k_size + 1 if k_size % 2 == 0 else k_size


def threshold_mask(raw: np.ndarray, threshold: float) -> np.ndarray:
    """Binary background mask: 255 where the foreground score is below threshold."""
    threshold_value = int(threshold * 255.0)
    return np.where(raw < threshold_value, 255, 0).astype(np.uint8)


def invert_mask(raw: np.ndarray) -> np.ndarray:
    return (255 - raw).astype(np.uint8)


def temporal_smooth(mask: np.ndarray, previous: np.ndarray, factor: float) -> np.ndarray:
    return cv2.addWeighted(mask, factor, previous, 1.0 - factor, 0.0)


def filter_contours(mask: np.ndarray, contour_filter: float) -> np.ndarray:
    """Keep only external contours larger than ``contour_filter`` of the frame, filled."""
    contours, _ = cv2.findContours(mask, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
    min_area = float(mask.size) * contour_filter
    kept = [contour for contour in contours if cv2.contourArea(contour) > min_area]
    filtered = np.zeros_like(mask)
    cv2.drawContours(filtered, kept, -1, 255, -1)
    return filtered


def smooth_contour(mask: np.ndarray, amount: float) -> np.ndarray:
    k_size = odd_kernel_size(3 + 11 * amount)
    return cv2.stackBlur(mask, (k_size, k_size))


def binarize(mask: np.ndarray, level: int = 128) -> np.ndarray:
    return np.where(mask > level, 255, 0).astype(np.uint8)


def feather_mask(mask: np.ndarray, amount: float) -> np.ndarray:
    k_size = odd_kernel_size(40 * amount)
    dilated = cv2.dilate(mask, None, iterations=k_size // 3)
    return cv2.boxFilter(dilated, -1, (k_size, k_size))


class MaskPostProcessor:
    """
    Turns the network's foreground map into the compositing mask.

    Holds the previous smoothed mask (at network resolution) for temporal
    smoothing; everything else is recomputed per call.
    """

    def __init__(self) -> None:
        self.previous_mask: Optional[np.ndarray] = None

    def reset(self) -> None:
        self.previous_mask = None

    def process(
        self,
        raw: np.ndarray,
        frame_size: Tuple[int, int],
        settings: Settings,
    ) -> np.ndarray:
        """
        Shape ``raw`` (uint8 foreground map) into a background mask of
        ``frame_size`` (width, height).
        """
        if settings.enable_threshold:
            mask = threshold_mask(raw, settings.threshold)
        else:
            mask = invert_mask(raw)

        factor = settings.temporal_smooth_factor
        previous = self.previous_mask
        if 0.0 < factor < 1.0 and previous is not None and previous.shape == mask.shape:
            if settings.enable_threshold:
                factor = max(factor, settings.threshold)
            mask = temporal_smooth(mask, previous, factor)

        self.previous_mask = mask.copy()

        if not settings.enable_threshold:
            return cv2.resize(mask, frame_size)

        if 0.0 < settings.contour_filter < 1.0:
            mask = filter_contours(mask, settings.contour_filter)

        if settings.smooth_contour > 0.0:
            mask = smooth_contour(mask, settings.smooth_contour)

        mask = cv2.resize(mask, frame_size)

        if settings.smooth_contour > 0.0:
            mask = binarize(mask)

        if settings.feather > 0.0:
            mask = feather_mask(mask, settings.feather)

        return mask
