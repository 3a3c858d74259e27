"""Decoder protocol, discovery and dispatch.

Decoding raw PoseNet outputs into keypoints (single-pose argmax decoding,
greedy multi-pose decoding with NMS and displacement-based part association)
is provided by decoder plugins. Plugins register themselves under the
``posenet.decoders`` entry point group in their pyproject.toml:

```toml
[project.entry-points."posenet.decoders"]
greedy = "mydecoder:GreedyDecoder"
```

Example:
    >>> from posenet.decoding import discover_decoders, load_decoder
    >>> print(list(discover_decoders()))
    ['greedy']
    >>> decoder = load_decoder("greedy")
"""

from __future__ import annotations

import logging
from importlib.metadata import entry_points
from typing import Any, Dict, List, Protocol

import numpy as np

from posenet.config import DecodingMethod, InferenceConfig
from posenet.types import ModelOutputs, Pose

logger = logging.getLogger(__name__)

DECODERS_GROUP = "posenet.decoders"


class PoseDecoder(Protocol):
    """Protocol for turning raw PoseNet outputs into poses.

    All arrays are (height, width, channels); returned positions are in
    model input pixel space.
    """

    def decode_single_pose(
        self,
        heatmap_scores: np.ndarray,
        offsets: np.ndarray,
        output_stride: int,
    ) -> Pose:
        """Decode the single most likely pose."""
        ...

    def decode_multiple_poses(
        self,
        heatmap_scores: np.ndarray,
        offsets: np.ndarray,
        displacement_fwd: np.ndarray,
        displacement_bwd: np.ndarray,
        output_stride: int,
        max_detections: int,
        score_threshold: float,
        nms_radius: float,
    ) -> List[Pose]:
        """Decode up to ``max_detections`` poses in decreasing score order."""
        ...


def discover_decoders() -> Dict[str, Any]:
    """Return registered decoder entry points by name."""
    return {ep.name: ep for ep in entry_points(group=DECODERS_GROUP)}


def load_decoder(name: str) -> PoseDecoder:
    """Load and instantiate a registered decoder.

    Raises:
        KeyError: If no decoder with the given name is registered.
    """
    decoders = discover_decoders()
    if name not in decoders:
        raise KeyError(
            f"No decoder registered with name '{name}'. "
            f"Available: {sorted(decoders)}"
        )
    factory = decoders[name].load()
    return factory()


def decode_poses(
    decoder: PoseDecoder,
    outputs: ModelOutputs,
    output_stride: int,
    config: InferenceConfig,
) -> List[Pose]:
    """Dispatch raw outputs to the decoder selected by ``config``.

    Multi-person results are limited to poses scoring at least
    ``score_threshold``, ordered by decreasing score and capped at
    ``max_detections``.
    """
    if config.decoding_method is DecodingMethod.SINGLE_PERSON:
        pose = decoder.decode_single_pose(
            outputs.heatmap_scores, outputs.offsets, output_stride
        )
        return [pose]

    poses = decoder.decode_multiple_poses(
        outputs.heatmap_scores,
        outputs.offsets,
        outputs.displacement_fwd,
        outputs.displacement_bwd,
        output_stride,
        config.max_detections,
        config.score_threshold,
        config.nms_radius,
    )
    kept = sorted(
        (p for p in poses if p.score >= config.score_threshold),
        key=lambda p: p.score,
        reverse=True,
    )[: config.max_detections]
    if len(kept) != len(poses):
        logger.debug(
            "Decoder returned %d poses, kept %d (threshold=%s, max=%d)",
            len(poses), len(kept), config.score_threshold, config.max_detections,
        )
    return kept


__all__ = [
    "DECODERS_GROUP",
    "PoseDecoder",
    "discover_decoders",
    "load_decoder",
    "decode_poses",
]
