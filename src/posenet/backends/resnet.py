"""ResNet50 PoseNet variant.

The ResNet50 graph expects raw RGB values with the ImageNet channel means
removed, and names its heatmap and offset outputs ``float_heatmaps`` and
``float_short_offsets``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import numpy as np

from posenet.backends.base import build_outputs, create_session, match_output_names
from posenet.types import ModelOutputs

logger = logging.getLogger(__name__)

# Added to RGB pixel values before the forward pass.
IMAGENET_MEAN_OFFSET = np.array([-123.15, -115.90, -103.06], dtype=np.float32)

OUTPUT_PATTERNS = {
    "heatmap_scores": ("heatmaps", "heatmap"),
    "offsets": ("short_offsets", "offset"),
    "displacement_fwd": ("displacement_fwd",),
    "displacement_bwd": ("displacement_bwd",),
}


class ResNet50Model:
    """PoseNet with a ResNet50 backbone.

    Only output stride 32 at input resolutions 257 and 513 is published.
    """

    def __init__(self, model_path: Path, input_resolution: int, output_stride: int):
        self._model_path = Path(model_path)
        self._input_resolution = input_resolution
        self._output_stride = output_stride
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

    def initialize(self, device: str = "cpu") -> None:
        if self._session is not None:
            return

        session = create_session(self._model_path, device)
        self._output_names = [o.name for o in session.get_outputs()]
        self._output_map = match_output_names(self._output_names, OUTPUT_PATTERNS)
        self._input_name = session.get_inputs()[0].name
        self._session = session
        logger.info(
            "ResNet50 (resolution=%d, stride=%d) initialized from %s",
            self._input_resolution, self._output_stride, self._model_path,
        )

    def predict(self, image: np.ndarray) -> ModelOutputs:
        if self._session is None:
            raise RuntimeError("Model not initialized. Call initialize() first.")

        batch = (image.astype(np.float32) + IMAGENET_MEAN_OFFSET)[np.newaxis, ...]
        results = self._session.run(None, {self._input_name: batch})
        return build_outputs(dict(zip(self._output_names, results)), self._output_map)

    def dispose(self) -> None:
        if self._session is None:
            return
        self._session = None
        logger.info("ResNet50 disposed")
