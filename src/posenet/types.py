"""Pose estimation domain types."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np


PART_NAMES = [
    "nose",
    "left_eye",
    "right_eye",
    "left_ear",
    "right_ear",
    "left_shoulder",
    "right_shoulder",
    "left_elbow",
    "right_elbow",
    "left_wrist",
    "right_wrist",
    "left_hip",
    "right_hip",
    "left_knee",
    "right_knee",
    "left_ankle",
    "right_ankle",
]

NUM_KEYPOINTS = len(PART_NAMES)


@dataclass(frozen=True)
class Position:
    """Pixel coordinates of a keypoint."""

    x: float
    y: float


@dataclass(frozen=True)
class Keypoint:
    """A single body part location.

    Attributes:
        part: Part name from PART_NAMES.
        position: Location in pixels.
        score: Part confidence in [0, 1].
    """

    part: str
    position: Position
    score: float


@dataclass(frozen=True)
class Pose:
    """A detected pose: ordered keypoints plus an aggregate score."""

    keypoints: List[Keypoint] = field(default_factory=list)
    score: float = 0.0

    def keypoints_array(self) -> np.ndarray:
        """Return keypoints as an (N, 3) float32 array of (x, y, score)."""
        if not self.keypoints:
            return np.zeros((0, 3), dtype=np.float32)
        return np.array(
            [[kp.position.x, kp.position.y, kp.score] for kp in self.keypoints],
            dtype=np.float32,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": float(self.score),
            "keypoints": [
                {
                    "part": kp.part,
                    "score": float(kp.score),
                    "position": {"x": float(kp.position.x), "y": float(kp.position.y)},
                }
                for kp in self.keypoints
            ],
        }


@dataclass(frozen=True)
class Padding:
    """Pixels added on each side when fitting an image to the model input."""

    top: int = 0
    bottom: int = 0
    left: int = 0
    right: int = 0


@dataclass
class ModelOutputs:
    """Raw network outputs for one image, in (height, width, channels) layout.

    Attributes:
        heatmap_scores: Per-part confidences after sigmoid, 17 channels.
        offsets: Short-range offsets, 34 channels (17 y then 17 x).
        displacement_fwd: Forward displacements along the pose graph, 32 channels.
        displacement_bwd: Backward displacements along the pose graph, 32 channels.
    """

    heatmap_scores: Optional[np.ndarray]
    offsets: Optional[np.ndarray]
    displacement_fwd: Optional[np.ndarray]
    displacement_bwd: Optional[np.ndarray]

    @property
    def released(self) -> bool:
        return self.heatmap_scores is None

    def as_dict(self) -> Dict[str, np.ndarray]:
        if self.released:
            raise RuntimeError("Model outputs have already been released.")
        return {
            "heatmap_scores": self.heatmap_scores,
            "offsets": self.offsets,
            "displacement_fwd": self.displacement_fwd,
            "displacement_bwd": self.displacement_bwd,
        }

    def release(self) -> None:
        """Drop the output buffers so they can be freed immediately."""
        self.heatmap_scores = None
        self.offsets = None
        self.displacement_fwd = None
        self.displacement_bwd = None


__all__ = [
    "PART_NAMES",
    "NUM_KEYPOINTS",
    "Position",
    "Keypoint",
    "Pose",
    "Padding",
    "ModelOutputs",
]
