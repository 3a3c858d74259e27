"""PoseNet model loading and inference orchestration."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

import numpy as np

from posenet.backends.base import BaseModel, require_onnxruntime
from posenet.backends.mobilenet import MobileNetV1Model
from posenet.backends.resnet import ResNet50Model
from posenet.checkpoints import get_checkpoint, resolve_checkpoint_path
from posenet.config import (
    Architecture,
    ConfigError,
    DEFAULT_MOBILENET_V1_CONFIG,
    DEFAULT_RESNET_CONFIG,
    InferenceConfig,
    MULTI_PERSON_INFERENCE_CONFIG,
    ModelConfig,
    assert_valid_output_stride,
    assert_valid_resolution,
    validate_model_config,
)
from posenet.decoding import PoseDecoder, decode_poses, discover_decoders, load_decoder
from posenet.image import get_input_dimensions, pad_and_resize_to
from posenet.transforms import flip_poses_horizontal, scale_poses_to_image
from posenet.types import ModelOutputs, Padding, Pose

logger = logging.getLogger(__name__)


@dataclass
class InferenceResult:
    """Raw outputs of one forward pass plus what is needed to map them back.

    Attributes:
        outputs: The four raw output tensors.
        padding: Padding applied to the original image before resizing.
        height: Original image height.
        width: Original image width.
        resized_height: Network input height.
        resized_width: Network input width.
        output_stride: Output stride of the network.
    """

    outputs: ModelOutputs
    padding: Padding
    height: int
    width: int
    resized_height: int
    resized_width: int
    output_stride: int


class PoseNet:
    """A loaded PoseNet network with a decoder.

    Args:
        base_model: Initialized network variant.
        decoder: Decoder used by :meth:`estimate_poses`. Without one only
            :meth:`infer` is available.

    Example:
        >>> with posenet.load(DEFAULT_MOBILENET_V1_CONFIG, decoder="greedy") as net:
        ...     poses = net.estimate_poses(image_rgb)
    """

    def __init__(self, base_model: BaseModel, decoder: Optional[PoseDecoder] = None):
        self.base_model = base_model
        self.decoder = decoder
        self._disposed = False

    @property
    def input_resolution(self) -> int:
        return self.base_model.input_resolution

    @property
    def output_stride(self) -> int:
        return self.base_model.output_stride

    def infer(self, image: np.ndarray) -> InferenceResult:
        """Pad/resize an RGB image and run it through the network.

        Args:
            image: RGB image with pixel values in [0, 255], shape (H, W),
                (H, W, 1), (H, W, 3) or (H, W, 4).

        Returns:
            InferenceResult. Call ``result.outputs.release()`` once done.
        """
        if self._disposed:
            raise RuntimeError("PoseNet model has been disposed.")

        output_stride = self.output_stride
        input_resolution = self.input_resolution
        assert_valid_output_stride(output_stride)
        assert_valid_resolution(input_resolution, output_stride)

        height, width = get_input_dimensions(image)

        t0 = time.perf_counter()
        resized, padding = pad_and_resize_to(image, (input_resolution, input_resolution))
        t1 = time.perf_counter()
        outputs = self.base_model.predict(resized)
        t2 = time.perf_counter()
        logger.debug(
            "Inference on %dx%d image: preprocess %.1fms, model %.1fms",
            width, height, (t1 - t0) * 1000, (t2 - t1) * 1000,
        )

        return InferenceResult(
            outputs=outputs,
            padding=padding,
            height=height,
            width=width,
            resized_height=input_resolution,
            resized_width=input_resolution,
            output_stride=output_stride,
        )

    def estimate_poses(
        self,
        image: np.ndarray,
        config: InferenceConfig = MULTI_PERSON_INFERENCE_CONFIG,
    ) -> List[Pose]:
        """Estimate poses in an image.

        Multi-person decoding returns up to ``config.max_detections`` poses
        whose root score is at least ``config.score_threshold``, in decreasing
        score order. Single-person decoding returns exactly one pose.

        Args:
            image: RGB image with pixel values in [0, 255].
            config: Decoding method and its parameters. Set
                ``flip_horizontal`` for mirrored input such as a webcam feed.

        Returns:
            Poses with keypoint positions in original image pixels.
        """
        if self.decoder is None:
            raise RuntimeError(
                "No decoder configured. Pass decoder= to posenet.load() or "
                "register one under the 'posenet.decoders' entry point group."
            )

        result = self.infer(image)
        try:
            poses = decode_poses(
                self.decoder, result.outputs, result.output_stride, config
            )
        finally:
            result.outputs.release()

        scaled = scale_poses_to_image(
            poses,
            result.height,
            result.width,
            result.padding,
            result.resized_height,
            result.resized_width,
        )
        if config.flip_horizontal:
            scaled = flip_poses_horizontal(scaled, result.width)
        return scaled

    def dispose(self) -> None:
        """Release the network. Safe to call more than once."""
        if self._disposed:
            return
        self.base_model.dispose()
        self._disposed = True

    def __enter__(self) -> "PoseNet":
        return self

    def __exit__(self, *exc) -> None:
        self.dispose()


def _resolve_decoder(decoder: Union[PoseDecoder, str, None]) -> Optional[PoseDecoder]:
    if isinstance(decoder, str):
        return load_decoder(decoder)
    if decoder is not None:
        return decoder

    available = sorted(discover_decoders())
    if not available:
        logger.debug("No decoder registered; only raw inference is available")
        return None
    logger.info("Using decoder '%s'", available[0])
    return load_decoder(available[0])


def load_mobilenet(
    config: ModelConfig = DEFAULT_MOBILENET_V1_CONFIG,
    *,
    decoder: Union[PoseDecoder, str, None] = None,
    models_dir: Optional[Path] = None,
    device: str = "cpu",
) -> PoseNet:
    """Load PoseNet with the MobileNetV1 checkpoint for ``config.multiplier``.

    The multiplier (0.5, 0.75 or 1.0) is the depth multiplier of all
    convolutions. Larger values are more accurate and slower.
    """
    if config.architecture is not Architecture.MOBILENET_V1:
        raise ConfigError(
            f"load_mobilenet() got a {config.architecture.value} configuration"
        )
    validate_model_config(config)
    require_onnxruntime()
    checkpoint = get_checkpoint(config)
    model_path = resolve_checkpoint_path(checkpoint, models_dir)
    decoder = _resolve_decoder(decoder)

    model = MobileNetV1Model(
        model_path,
        input_resolution=config.input_resolution,
        output_stride=config.output_stride,
        multiplier=float(config.multiplier),
    )
    model.initialize(device)
    return PoseNet(model, decoder)


def load_resnet(
    config: ModelConfig = DEFAULT_RESNET_CONFIG,
    *,
    decoder: Union[PoseDecoder, str, None] = None,
    models_dir: Optional[Path] = None,
    device: str = "cpu",
) -> PoseNet:
    """Load PoseNet with the ResNet50 checkpoint.

    Only output stride 32 and input resolutions 257 and 513 are supported.
    """
    if config.architecture is not Architecture.RESNET50:
        raise ConfigError(
            f"load_resnet() got a {config.architecture.value} configuration"
        )
    validate_model_config(config)
    require_onnxruntime()
    checkpoint = get_checkpoint(config)
    model_path = resolve_checkpoint_path(checkpoint, models_dir)
    decoder = _resolve_decoder(decoder)

    model = ResNet50Model(
        model_path,
        input_resolution=config.input_resolution,
        output_stride=config.output_stride,
    )
    model.initialize(device)
    return PoseNet(model, decoder)


def load(
    config: ModelConfig = DEFAULT_MOBILENET_V1_CONFIG,
    *,
    decoder: Union[PoseDecoder, str, None] = None,
    models_dir: Optional[Path] = None,
    device: str = "cpu",
) -> PoseNet:
    """Load a PoseNet model for a configuration.

    Args:
        config: Architecture, output stride, input resolution and multiplier.
        decoder: Decoder instance, registered decoder name, or None to use the
            first registered decoder if any.
        models_dir: Base directory of converted checkpoints.
            See :func:`posenet.checkpoints.checkpoint_dir`.
        device: "cpu" or "cuda[:N]".

    Raises:
        ConfigError: Unsupported architecture, stride, resolution or multiplier.
        ImportError: onnxruntime is not installed.
        FileNotFoundError: The checkpoint has not been fetched.
    """
    if config.architecture is Architecture.RESNET50:
        return load_resnet(config, decoder=decoder, models_dir=models_dir, device=device)
    return load_mobilenet(config, decoder=decoder, models_dir=models_dir, device=device)


__all__ = [
    "InferenceResult",
    "PoseNet",
    "load",
    "load_mobilenet",
    "load_resnet",
]
