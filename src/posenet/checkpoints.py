"""Checkpoint table and local checkpoint management.

Pre-trained weights are published as TensorFlow.js graph models. They are
fetched once, converted to ONNX with ``tf2onnx`` and stored under
``~/.posenet/models/posenet`` unless ``POSENET_MODELS_DIR`` or ``POSENET_HOME``
says otherwise.
"""

from __future__ import annotations

import importlib.util
import json
import logging
import os
import subprocess
import sys
import tempfile
import urllib.request
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from posenet.config import (
    Architecture,
    ConfigError,
    MOBILENET_MULTIPLIERS,
    ModelConfig,
    RESNET_INPUT_RESOLUTIONS,
    RESNET_OUTPUT_STRIDES,
    VALID_OUTPUT_STRIDES,
    parse_architecture,
)

logger = logging.getLogger(__name__)

CHECKPOINT_SUBDIR = "posenet"
MODELS_DIR_ENV = "POSENET_MODELS_DIR"
HOME_ENV = "POSENET_HOME"

MOBILENET_BASE_URL = "https://storage.googleapis.com/tfjs-models/savedmodel/posenet/mobilenet/"
RESNET50_BASE_URL = "https://storage.googleapis.com/tfjs-models/savedmodel/posenet/resnet50/"

_MULTIPLIER_DIRS = {0.5: "050", 0.75: "075", 1.0: "100"}


@dataclass(frozen=True)
class Checkpoint:
    """A named set of pre-trained weights.

    Attributes:
        name: Stable identifier, also the stem of the local ONNX file.
        url: Source TensorFlow.js ``model.json`` URL.
    """

    name: str
    url: str

    @property
    def filename(self) -> str:
        return f"{self.name}.onnx"


def _mobilenet_checkpoint(multiplier: float, stride: int) -> Checkpoint:
    depth = _MULTIPLIER_DIRS[multiplier]
    return Checkpoint(
        name=f"mobilenet_v1_{depth}_stride{stride}",
        url=f"{MOBILENET_BASE_URL}float/{depth}/model-stride{stride}.json",
    )


def _resnet50_checkpoint(stride: int) -> Checkpoint:
    return Checkpoint(
        name=f"resnet50_stride{stride}",
        url=f"{RESNET50_BASE_URL}float/model-stride{stride}.json",
    )


# multiplier -> output stride -> checkpoint
MOBILENET_CHECKPOINTS: Dict[float, Dict[int, Checkpoint]] = {
    multiplier: {
        stride: _mobilenet_checkpoint(multiplier, stride)
        for stride in VALID_OUTPUT_STRIDES
    }
    for multiplier in MOBILENET_MULTIPLIERS
}

# input resolution -> output stride -> checkpoint
RESNET50_CHECKPOINTS: Dict[int, Dict[int, Checkpoint]] = {
    resolution: {stride: _resnet50_checkpoint(stride) for stride in RESNET_OUTPUT_STRIDES}
    for resolution in RESNET_INPUT_RESOLUTIONS
}


def get_checkpoint(config: ModelConfig) -> Checkpoint:
    """Select the checkpoint for a model configuration.

    Raises:
        ConfigError: If no checkpoint exists for the configuration.
    """
    architecture = parse_architecture(config.architecture)
    if architecture is Architecture.RESNET50:
        by_stride = RESNET50_CHECKPOINTS.get(config.input_resolution, {})
        key = f"resolution {config.input_resolution}, stride {config.output_stride}"
    else:
        multiplier = config.multiplier
        by_stride = {}
        if isinstance(multiplier, (int, float)) and not isinstance(multiplier, bool):
            by_stride = MOBILENET_CHECKPOINTS.get(float(multiplier), {})
        key = f"multiplier {multiplier}, stride {config.output_stride}"

    checkpoint = by_stride.get(config.output_stride)
    if checkpoint is None:
        raise ConfigError(f"No {architecture.value} checkpoint exists for {key}.")
    return checkpoint


def checkpoint_dir(models_dir: Optional[Path] = None) -> Path:
    """Return the directory holding converted checkpoints.

    The base models directory is, in order: ``models_dir``, the
    ``POSENET_MODELS_DIR`` environment variable, ``$POSENET_HOME/models``,
    ``~/.posenet/models``. Relative paths resolve against the working
    directory. Nothing is created here; :func:`fetch_checkpoint` creates the
    directory when it stores a checkpoint.
    """
    if models_dir is None:
        env_val = os.environ.get(MODELS_DIR_ENV)
        if env_val:
            models_dir = Path(env_val)
        else:
            home = os.environ.get(HOME_ENV)
            home_dir = Path(home) if home else Path.home() / ".posenet"
            models_dir = home_dir / "models"
    models_dir = Path(models_dir)
    if not models_dir.is_absolute():
        models_dir = Path.cwd() / models_dir
    return models_dir / CHECKPOINT_SUBDIR


def checkpoint_path(checkpoint: Checkpoint, models_dir: Optional[Path] = None) -> Path:
    """Return where the converted ONNX file for ``checkpoint`` is stored."""
    return checkpoint_dir(models_dir) / checkpoint.filename


def resolve_checkpoint_path(
    checkpoint: Checkpoint, models_dir: Optional[Path] = None
) -> Path:
    """Return the local ONNX path for a checkpoint.

    Raises:
        FileNotFoundError: If the checkpoint has not been fetched yet.
    """
    path = checkpoint_path(checkpoint, models_dir)
    if not path.exists():
        raise FileNotFoundError(
            f"PoseNet checkpoint '{checkpoint.name}' not found at {path}. "
            f"Fetch and convert it with: posenet fetch (source: {checkpoint.url})"
        )
    return path


def _download(url: str, dest: Path) -> None:
    logger.info("Downloading %s", url)
    try:
        urllib.request.urlretrieve(url, dest)
    except Exception as e:
        raise RuntimeError(
            f"Failed to download {url}: {e}\n"
            f"You can download it manually and save it to: {dest}"
        ) from e


def _download_graph_model(checkpoint: Checkpoint, dest_dir: Path) -> Path:
    """Download ``model.json`` and every weight shard it references."""
    model_json = dest_dir / "model.json"
    _download(checkpoint.url, model_json)

    base_url = checkpoint.url.rsplit("/", 1)[0] + "/"
    with open(model_json) as f:
        manifest = json.load(f)

    for group in manifest.get("weightsManifest", []):
        for shard in group.get("paths", []):
            _download(base_url + shard, dest_dir / shard)
    return model_json


def _converter_available() -> bool:
    # installed check only, conversion runs in a subprocess
    return importlib.util.find_spec("tf2onnx") is not None


def fetch_checkpoint(
    checkpoint: Checkpoint,
    models_dir: Optional[Path] = None,
    force: bool = False,
) -> Path:
    """Download a checkpoint and convert it to ONNX.

    Args:
        checkpoint: Checkpoint to fetch.
        models_dir: Base models directory, see :func:`checkpoint_dir`.
        force: Re-fetch even if the ONNX file already exists.

    Returns:
        Path to the converted ONNX file.

    Raises:
        ImportError: If tf2onnx is not installed.
        RuntimeError: If downloading or conversion fails.
    """
    output_path = checkpoint_path(checkpoint, models_dir)
    if output_path.exists() and not force:
        logger.info("Checkpoint %s already present at %s", checkpoint.name, output_path)
        return output_path

    if not _converter_available():
        raise ImportError(
            "tf2onnx is required to convert PoseNet checkpoints. "
            "Install with: pip install 'posenet[export]'"
        )

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.TemporaryDirectory(dir=output_path.parent) as tmp:
        model_json = _download_graph_model(checkpoint, Path(tmp))
        tmp_output = Path(tmp) / checkpoint.filename

        logger.info("Converting %s to ONNX", checkpoint.name)
        result = subprocess.run(
            [
                sys.executable, "-m", "tf2onnx.convert",
                "--tfjs", str(model_json),
                "--output", str(tmp_output),
            ],
            capture_output=True,
            text=True,
        )
        if result.returncode != 0:
            raise RuntimeError(
                f"tf2onnx conversion of {checkpoint.name} failed:\n{result.stderr}"
            )
        tmp_output.replace(output_path)

    logger.info("Checkpoint %s saved to %s", checkpoint.name, output_path)
    return output_path


__all__ = [
    "Checkpoint",
    "MOBILENET_CHECKPOINTS",
    "RESNET50_CHECKPOINTS",
    "get_checkpoint",
    "checkpoint_dir",
    "checkpoint_path",
    "resolve_checkpoint_path",
    "fetch_checkpoint",
]
