from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .algorithms.onnx_base import InferenceSessionManager

__all__ = [
    "ErrorKind",
    "BackgroundFilterError",
    "ModelFileNotFound",
    "SessionCreateError",
    "InvalidShapeError",
    "InferenceRuntimeError",
    "SessionResult",
]


class ErrorKind(enum.Enum):
    MODEL_FILE_NOT_FOUND = "model_file_not_found"
    SESSION_CREATE = "session_create"
    INVALID_SHAPE = "invalid_shape"
    INFERENCE_RUNTIME = "inference_runtime"

    @property
    def terminal(self) -> bool:
        """Whether the error disables the filter until the next settings update."""
        return self is not ErrorKind.INFERENCE_RUNTIME


class BackgroundFilterError(Exception):
    kind: ErrorKind


class ModelFileNotFound(BackgroundFilterError):
    kind = ErrorKind.MODEL_FILE_NOT_FOUND


class SessionCreateError(BackgroundFilterError):
    kind = ErrorKind.SESSION_CREATE


class InvalidShapeError(BackgroundFilterError):
    kind = ErrorKind.INVALID_SHAPE


class InferenceRuntimeError(BackgroundFilterError):
    kind = ErrorKind.INFERENCE_RUNTIME


@dataclass(frozen=True)
class SessionResult:
    """Outcome of a session rebuild: a ready manager or exactly one error."""

    manager: Optional["InferenceSessionManager"] = None
    error: Optional[BackgroundFilterError] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.manager is not None
