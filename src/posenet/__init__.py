"""PoseNet model loading and inference on ONNX Runtime."""

from posenet.config import (
    Architecture,
    ConfigError,
    DecodingMethod,
    DEFAULT_MOBILENET_V1_CONFIG,
    DEFAULT_RESNET_CONFIG,
    InferenceConfig,
    ModelConfig,
    MULTI_PERSON_INFERENCE_CONFIG,
    SINGLE_PERSON_INFERENCE_CONFIG,
)
from posenet.decoding import PoseDecoder
from posenet.model import InferenceResult, PoseNet, load, load_mobilenet, load_resnet
from posenet.types import Keypoint, ModelOutputs, PART_NAMES, Pose, Position

__version__ = "0.1.0"

__all__ = [
    "Architecture",
    "ConfigError",
    "DecodingMethod",
    "DEFAULT_MOBILENET_V1_CONFIG",
    "DEFAULT_RESNET_CONFIG",
    "InferenceConfig",
    "ModelConfig",
    "MULTI_PERSON_INFERENCE_CONFIG",
    "SINGLE_PERSON_INFERENCE_CONFIG",
    "PoseDecoder",
    "InferenceResult",
    "PoseNet",
    "load",
    "load_mobilenet",
    "load_resnet",
    "Keypoint",
    "ModelOutputs",
    "PART_NAMES",
    "Pose",
    "Position",
]
