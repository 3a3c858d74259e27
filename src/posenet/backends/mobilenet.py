"""MobileNetV1 PoseNet variant.

ONNX model converted from the TensorFlow.js graph checkpoint:
  - input: [1, R, R, 3] float32 RGB, scaled to [-1, 1]
  - outputs: heatmap [1, S, S, 17], offset [1, S, S, 34],
    displacement_fwd / displacement_bwd [1, S, S, 32]

where R is the input resolution and S = (R - 1) / stride + 1.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import numpy as np

from posenet.backends.base import build_outputs, create_session, match_output_names
from posenet.types import ModelOutputs

logger = logging.getLogger(__name__)

OUTPUT_PATTERNS = {
    "heatmap_scores": ("heatmap",),
    "offsets": ("offset",),
    "displacement_fwd": ("displacement_fwd",),
    "displacement_bwd": ("displacement_bwd",),
}


class MobileNetV1Model:
    """PoseNet with a MobileNetV1 backbone.

    Args:
        model_path: Converted ONNX checkpoint.
        input_resolution: Side of the square network input.
        output_stride: Output stride the checkpoint was built for.
        multiplier: Channel depth multiplier of the checkpoint.

    Example:
        >>> model = MobileNetV1Model(path, input_resolution=257, output_stride=16)
        >>> model.initialize("cpu")
        >>> outputs = model.predict(resized)
        >>> model.dispose()
    """

    def __init__(
        self,
        model_path: Path,
        input_resolution: int,
        output_stride: int,
        multiplier: float = 0.75,
    ):
        self._model_path = Path(model_path)
        self._input_resolution = input_resolution
        self._output_stride = output_stride
        self._multiplier = multiplier
        self._session: Optional[Any] = None
        self._input_name: Optional[str] = None
        self._output_names: list = []
        self._output_map: Dict[str, str] = {}

    @property
    def input_resolution(self) -> int:
        return self._input_resolution

    @property
    def output_stride(self) -> int:
        return self._output_stride

    @property
    def multiplier(self) -> float:
        return self._multiplier

    def initialize(self, device: str = "cpu") -> None:
        if self._session is not None:
            return

        session = create_session(self._model_path, device)
        self._output_names = [o.name for o in session.get_outputs()]
        self._output_map = match_output_names(self._output_names, OUTPUT_PATTERNS)
        self._input_name = session.get_inputs()[0].name
        self._session = session
        logger.info(
            "MobileNetV1 (multiplier=%s, stride=%d) initialized from %s",
            self._multiplier, self._output_stride, self._model_path,
        )

    def _preprocess(self, image: np.ndarray) -> np.ndarray:
        x = image.astype(np.float32) / 127.5 - 1.0
        return x[np.newaxis, ...]

    def predict(self, image: np.ndarray) -> ModelOutputs:
        if self._session is None:
            raise RuntimeError("Model not initialized. Call initialize() first.")

        batch = self._preprocess(image)
        results = self._session.run(None, {self._input_name: batch})
        return build_outputs(dict(zip(self._output_names, results)), self._output_map)

    def dispose(self) -> None:
        if self._session is None:
            return
        self._session = None
        logger.info("MobileNetV1 disposed")
