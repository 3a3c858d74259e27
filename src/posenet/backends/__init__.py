"""PoseNet network variants."""

from posenet.backends.base import BaseModel
from posenet.backends.mobilenet import MobileNetV1Model
from posenet.backends.resnet import ResNet50Model

__all__ = ["BaseModel", "MobileNetV1Model", "ResNet50Model"]
