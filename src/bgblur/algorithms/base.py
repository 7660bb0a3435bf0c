from __future__ import annotations

import abc
from pathlib import Path
from typing import Any, ClassVar, List, Sequence, Tuple

import cv2
import numpy as np
import torch
import torch.nn.functional as F
from torchvision.transforms import functional as TF

from ..errors import InvalidShapeError

Dims = List[int]


class SegmentationModel(abc.ABC):
    """
    Adapter between the filter pipeline and one family of ONNX segmentation
    networks.

    Instances are stateful: tensor buffers are allocated once per session and
    reused for every frame, and recurrent variants keep their hidden state in
    those buffers between calls to :meth:`feedback_state`.
    """

    MODEL_NAME: ClassVar[str]
    MODEL_FILE: ClassVar[str]
    LAYOUT: ClassVar[str] = "NCHW"
    INPUT_SCALE: ClassVar[float] = 1.0 / 255.0
    NORMALIZE_MEAN: ClassVar[Tuple[float, float, float]] = (0.0, 0.0, 0.0)
    NORMALIZE_STD: ClassVar[Tuple[float, float, float]] = (1.0, 1.0, 1.0)

    def __init__(self) -> None:
        self.input_names: List[str] = []
        self.output_names: List[str] = []
        self.input_dims: List[Dims] = []
        self.output_dims: List[Dims] = []
        self.input_values: List[np.ndarray] = []
        self.output_values: List[np.ndarray] = []

    @classmethod
    def model_path(cls, root: Path) -> Path:
        return root / cls.MODEL_FILE

    def input_output_names(self, session: Any) -> Tuple[List[str], List[str]]:
        self.input_names = [node.name for node in session.get_inputs()]
        self.output_names = [node.name for node in session.get_outputs()]
        return self.input_names, self.output_names

    def input_output_shapes(self, session: Any) -> Tuple[List[Dims], List[Dims]]:
        self.input_dims = [_static_dims(node.name, node.shape) for node in session.get_inputs()]
        self.output_dims = [_static_dims(node.name, node.shape) for node in session.get_outputs()]
        if not self.input_dims or not self.output_dims:
            raise InvalidShapeError(f"{self.MODEL_NAME}: model declares no inputs or outputs.")
        if len(self.input_dims[0]) != 4:
            raise InvalidShapeError(
                f"{self.MODEL_NAME}: expected a 4-D image input, got {self.input_dims[0]}."
            )
        return self.input_dims, self.output_dims

    def allocate_tensor_buffers(self) -> None:
        self.input_values = [np.zeros(dims, dtype=np.float32) for dims in self.input_dims]
        self.output_values = [np.zeros(dims, dtype=np.float32) for dims in self.output_dims]

    def release_buffers(self) -> None:
        self.input_values = []
        self.output_values = []

    def network_input_size(self) -> Tuple[int, int]:
        dims = self.input_dims[0]
        if self.LAYOUT == "NHWC":
            return dims[2], dims[1]
        return dims[3], dims[2]

    def prepare(self, frame: np.ndarray) -> torch.Tensor:
        width, height = self.network_input_size()
        rgb = cv2.cvtColor(frame, cv2.COLOR_BGRA2RGB)
        tensor = torch.from_numpy(rgb).permute(2, 0, 1).unsqueeze(0).float()
        tensor = F.interpolate(tensor, size=(height, width), mode="bilinear", align_corners=False)
        tensor = tensor * self.INPUT_SCALE
        return TF.normalize(tensor, mean=list(self.NORMALIZE_MEAN), std=list(self.NORMALIZE_STD))

    def load_into_tensor(self, prepared: torch.Tensor) -> None:
        if self.LAYOUT == "NHWC":
            prepared = prepared.permute(0, 2, 3, 1)
        np.copyto(self.input_values[0], prepared.contiguous().numpy())

    def run_inference(self, session: Any) -> None:
        feeds = dict(zip(self.input_names, self.input_values))
        outputs = session.run(self.output_names, feeds)
        for buffer, output in zip(self.output_values, outputs):
            np.copyto(buffer, np.asarray(output, dtype=np.float32).reshape(buffer.shape))

    def extract_output(self) -> np.ndarray:
        """Return the raw single-channel map from the first output buffer."""
        output = self.output_values[0]
        if self.LAYOUT == "NHWC":
            return output[0, :, :, 0]
        return output[0, 0]

    def feedback_state(self) -> None:
        """Carry hidden state to the next frame; stateless networks have none."""

    @abc.abstractmethod
    def postprocess(self, raw: np.ndarray) -> np.ndarray:
        ...


def _static_dims(name: str, shape: Sequence[Any]) -> Dims:
    dims: Dims = []
    for index, dim in enumerate(shape):
        if isinstance(dim, int) and dim > 0:
            dims.append(dim)
        elif index == 0:
            dims.append(1)
        else:
            raise InvalidShapeError(f"Tensor '{name}' has unresolved dimension {dim!r} in {list(shape)}.")
    return dims


def min_max_normalize(values: np.ndarray) -> np.ndarray:
    low = float(values.min())
    high = float(values.max())
    if high - low < 1e-12:
        return np.zeros_like(values, dtype=np.float32)
    return ((values - low) / (high - low)).astype(np.float32)
