"""Fakes shared by posenet tests: sessions, decoders and network variants."""

from types import SimpleNamespace
from typing import List, Optional

import numpy as np

from posenet.types import Keypoint, ModelOutputs, PART_NAMES, Pose, Position


MOBILENET_OUTPUT_NAMES = [
    "MobilenetV1/offset_2/BiasAdd",
    "MobilenetV1/heatmap_2/BiasAdd",
    "MobilenetV1/displacement_fwd_2/BiasAdd",
    "MobilenetV1/displacement_bwd_2/BiasAdd",
]

RESNET_OUTPUT_NAMES = [
    "float_heatmaps",
    "float_short_offsets",
    "resnet_v1_50/displacement_fwd_2/BiasAdd",
    "resnet_v1_50/displacement_bwd_2/BiasAdd",
]

_CHANNELS = {"heatmap": 17, "offset": 34, "displacement_fwd": 32, "displacement_bwd": 32}


def _channels_for(name: str) -> int:
    for key in ("displacement_fwd", "displacement_bwd", "heatmap", "offset"):
        if key in name.lower():
            return _CHANNELS[key]
    raise KeyError(name)


class FakeSession:
    """Stands in for onnxruntime.InferenceSession."""

    def __init__(self, output_names: List[str], resolution: int, stride: int):
        self.output_names = list(output_names)
        self.size = (resolution - 1) // stride + 1
        self.feeds: list = []

    def get_inputs(self):
        return [SimpleNamespace(name="sub_2")]

    def get_outputs(self):
        return [SimpleNamespace(name=n) for n in self.output_names]

    def run(self, output_names, feed):
        self.feeds.append(feed)
        return [
            np.zeros((1, self.size, self.size, _channels_for(n)), dtype=np.float32)
            for n in self.output_names
        ]


class FakeDecoder:
    """Decoder returning canned poses in model input space."""

    def __init__(self, poses: Optional[List[Pose]] = None):
        self.poses = poses or []
        self.single_calls: list = []
        self.multi_calls: list = []

    def decode_single_pose(self, heatmap_scores, offsets, output_stride):
        self.single_calls.append((heatmap_scores.shape, offsets.shape, output_stride))
        return self.poses[0] if self.poses else Pose()

    def decode_multiple_poses(
        self,
        heatmap_scores,
        offsets,
        displacement_fwd,
        displacement_bwd,
        output_stride,
        max_detections,
        score_threshold,
        nms_radius,
    ):
        self.multi_calls.append(
            dict(
                output_stride=output_stride,
                max_detections=max_detections,
                score_threshold=score_threshold,
                nms_radius=nms_radius,
            )
        )
        return list(self.poses)


class MockModel:
    """Mock network variant implementing the BaseModel protocol."""

    def __init__(self, input_resolution: int = 257, output_stride: int = 16):
        self.input_resolution = input_resolution
        self.output_stride = output_stride
        self.inputs: list = []
        self.returned: list = []
        self.dispose_count = 0

    def initialize(self, device="cpu"):
        pass

    def predict(self, image):
        self.inputs.append(image)
        size = (self.input_resolution - 1) // self.output_stride + 1
        outputs = make_outputs(size)
        self.returned.append(outputs)
        return outputs

    def dispose(self):
        self.dispose_count += 1


def make_outputs(size: int = 17) -> ModelOutputs:
    return ModelOutputs(
        heatmap_scores=np.full((size, size, 17), 0.5, dtype=np.float32),
        offsets=np.zeros((size, size, 34), dtype=np.float32),
        displacement_fwd=np.zeros((size, size, 32), dtype=np.float32),
        displacement_bwd=np.zeros((size, size, 32), dtype=np.float32),
    )


def make_pose(x: float, y: float, score: float = 0.9) -> Pose:
    """Pose with every keypoint at (x, y)."""
    return Pose(
        keypoints=[
            Keypoint(part=name, position=Position(x=x, y=y), score=score)
            for name in PART_NAMES
        ],
        score=score,
    )


