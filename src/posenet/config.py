"""Model and inference configuration for PoseNet.

Configurations are immutable; the defaults are exposed as named constants
and passed explicitly into :func:`posenet.load` and
:meth:`posenet.PoseNet.estimate_poses`.

Example:
    >>> from posenet.config import ModelConfig, Architecture, validate_model_config
    >>> config = ModelConfig(
    ...     architecture=Architecture.MOBILENET_V1,
    ...     output_stride=16,
    ...     input_resolution=257,
    ...     multiplier=0.5,
    ... )
    >>> validate_model_config(config)
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional, Union


VALID_OUTPUT_STRIDES = (8, 16, 32)
VALID_INPUT_RESOLUTIONS = (161, 193, 257, 289, 321, 353, 385, 417, 449, 481, 513)

# Multipliers with a published MobileNetV1 graph checkpoint.
MOBILENET_MULTIPLIERS = (0.5, 0.75, 1.0)

RESNET_OUTPUT_STRIDES = (32,)
RESNET_INPUT_RESOLUTIONS = (257, 513)


class ConfigError(ValueError):
    """Raised when a model or inference configuration is not supported."""


class Architecture(str, Enum):
    """Supported PoseNet backbones."""

    MOBILENET_V1 = "MobileNetV1"
    RESNET50 = "ResNet50"


class DecodingMethod(str, Enum):
    """How raw outputs are turned into poses."""

    SINGLE_PERSON = "single-person"
    MULTI_PERSON = "multi-person"


def parse_architecture(value: Union[str, Architecture]) -> Architecture:
    try:
        return Architecture(value)
    except ValueError:
        raise ConfigError(
            f"Unknown architecture '{value}'. "
            f"Must be one of {[a.value for a in Architecture]}."
        ) from None


def parse_decoding_method(value: Union[str, DecodingMethod]) -> DecodingMethod:
    try:
        return DecodingMethod(value)
    except ValueError:
        raise ConfigError(
            f"Unknown decoding method '{value}'. "
            f"Must be one of {[m.value for m in DecodingMethod]}."
        ) from None


@dataclass(frozen=True)
class ModelConfig:
    """Which network to load.

    Attributes:
        architecture: Backbone, MobileNetV1 or ResNet50.
        output_stride: Downsampling factor between input and output tensors.
            Smaller is more accurate and slower.
        input_resolution: Side of the square image fed to the network.
        multiplier: MobileNetV1 channel depth multiplier. Ignored by ResNet50.
    """

    architecture: Architecture
    output_stride: int
    input_resolution: int
    multiplier: Optional[float] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "architecture", parse_architecture(self.architecture))

    @property
    def output_size(self) -> int:
        """Side of the output heatmaps: (resolution - 1) / stride + 1."""
        return (self.input_resolution - 1) // self.output_stride + 1


@dataclass(frozen=True)
class InferenceConfig:
    """How to decode and post-process one inference call.

    Attributes:
        decoding_method: Single-person or multi-person decoding.
        flip_horizontal: Mirror poses horizontally, e.g. for webcam input.
        max_detections: Maximum number of returned poses (multi-person).
        score_threshold: Minimum root part score of returned poses (multi-person).
        nms_radius: Non-maximum suppression part distance in pixels, strictly
            positive (multi-person).
    """

    decoding_method: DecodingMethod
    flip_horizontal: bool = False
    max_detections: Optional[int] = None
    score_threshold: Optional[float] = None
    nms_radius: Optional[float] = None

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "decoding_method", parse_decoding_method(self.decoding_method)
        )
        if self.decoding_method is not DecodingMethod.MULTI_PERSON:
            return

        if self.max_detections is None or self.max_detections < 1:
            raise ConfigError(
                f"max_detections must be >= 1 for multi-person decoding, "
                f"got {self.max_detections}."
            )
        if self.score_threshold is None or not 0.0 <= self.score_threshold <= 1.0:
            raise ConfigError(
                f"score_threshold must be within [0, 1] for multi-person decoding, "
                f"got {self.score_threshold}."
            )
        if self.nms_radius is None or self.nms_radius <= 0:
            raise ConfigError(
                f"nms_radius must be strictly positive for multi-person decoding, "
                f"got {self.nms_radius}."
            )

    @classmethod
    def single_person(cls, flip_horizontal: bool = False) -> "InferenceConfig":
        return cls(
            decoding_method=DecodingMethod.SINGLE_PERSON,
            flip_horizontal=flip_horizontal,
        )

    @classmethod
    def multi_person(
        cls,
        max_detections: int = 5,
        score_threshold: float = 0.5,
        nms_radius: float = 20,
        flip_horizontal: bool = False,
    ) -> "InferenceConfig":
        return cls(
            decoding_method=DecodingMethod.MULTI_PERSON,
            flip_horizontal=flip_horizontal,
            max_detections=max_detections,
            score_threshold=score_threshold,
            nms_radius=nms_radius,
        )


DEFAULT_MOBILENET_V1_CONFIG = ModelConfig(
    architecture=Architecture.MOBILENET_V1,
    output_stride=16,
    input_resolution=513,
    multiplier=0.75,
)

DEFAULT_RESNET_CONFIG = ModelConfig(
    architecture=Architecture.RESNET50,
    output_stride=32,
    input_resolution=257,
    multiplier=1.0,  # not used by ResNet50
)

SINGLE_PERSON_INFERENCE_CONFIG = InferenceConfig.single_person()

MULTI_PERSON_INFERENCE_CONFIG = InferenceConfig.multi_person(
    max_detections=5,
    score_threshold=0.5,
    nms_radius=20,
)


def assert_valid_output_stride(output_stride: int) -> None:
    if output_stride not in VALID_OUTPUT_STRIDES:
        raise ConfigError(
            f"Invalid output stride {output_stride}. "
            f"Must be one of {list(VALID_OUTPUT_STRIDES)}."
        )


def assert_valid_resolution(input_resolution: int, output_stride: int) -> None:
    if (input_resolution - 1) % output_stride != 0:
        raise ConfigError(
            f"Input resolution {input_resolution} is not compatible with output "
            f"stride {output_stride}: (resolution - 1) must be divisible by the stride."
        )
    if input_resolution not in VALID_INPUT_RESOLUTIONS:
        raise ConfigError(
            f"Invalid input resolution {input_resolution}. "
            f"Must be one of {list(VALID_INPUT_RESOLUTIONS)}."
        )


def validate_model_config(config: ModelConfig) -> None:
    """Check a model configuration against the supported combinations.

    Raises:
        ConfigError: If the architecture, stride, resolution or multiplier
            has no corresponding checkpoint.
    """
    architecture = parse_architecture(config.architecture)

    if architecture is Architecture.RESNET50:
        if config.output_stride not in RESNET_OUTPUT_STRIDES:
            raise ConfigError(
                f"Invalid stride value of {config.output_stride}. No checkpoint "
                f"exists for that stride. Currently must be one of "
                f"{list(RESNET_OUTPUT_STRIDES)}."
            )
        if config.input_resolution not in RESNET_INPUT_RESOLUTIONS:
            raise ConfigError(
                f"Invalid resolution value of {config.input_resolution}. No checkpoint "
                f"exists for that resolution. Currently must be one of "
                f"{list(RESNET_INPUT_RESOLUTIONS)}."
            )
        return

    assert_valid_output_stride(config.output_stride)
    assert_valid_resolution(config.input_resolution, config.output_stride)

    multiplier = config.multiplier
    if isinstance(multiplier, bool) or not isinstance(multiplier, (int, float)):
        raise ConfigError(
            f"Got multiplier type of {type(multiplier).__name__} "
            f"when it should be a number."
        )
    if float(multiplier) not in MOBILENET_MULTIPLIERS:
        raise ConfigError(
            f"Invalid multiplier value of {multiplier}. No checkpoint exists for "
            f"that multiplier. Must be one of {list(MOBILENET_MULTIPLIERS)}."
        )


def iter_supported_configs() -> Iterator[ModelConfig]:
    """Yield every supported model configuration."""
    for multiplier in MOBILENET_MULTIPLIERS:
        for stride in VALID_OUTPUT_STRIDES:
            for resolution in VALID_INPUT_RESOLUTIONS:
                if (resolution - 1) % stride == 0:
                    yield ModelConfig(
                        architecture=Architecture.MOBILENET_V1,
                        output_stride=stride,
                        input_resolution=resolution,
                        multiplier=multiplier,
                    )
    for stride in RESNET_OUTPUT_STRIDES:
        for resolution in RESNET_INPUT_RESOLUTIONS:
            yield ModelConfig(
                architecture=Architecture.RESNET50,
                output_stride=stride,
                input_resolution=resolution,
            )


__all__ = [
    "VALID_OUTPUT_STRIDES",
    "VALID_INPUT_RESOLUTIONS",
    "MOBILENET_MULTIPLIERS",
    "RESNET_OUTPUT_STRIDES",
    "RESNET_INPUT_RESOLUTIONS",
    "ConfigError",
    "Architecture",
    "DecodingMethod",
    "ModelConfig",
    "InferenceConfig",
    "DEFAULT_MOBILENET_V1_CONFIG",
    "DEFAULT_RESNET_CONFIG",
    "SINGLE_PERSON_INFERENCE_CONFIG",
    "MULTI_PERSON_INFERENCE_CONFIG",
    "assert_valid_output_stride",
    "assert_valid_resolution",
    "validate_model_config",
    "iter_supported_configs",
]
