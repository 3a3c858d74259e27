"""Model protocol and ONNX Runtime helpers shared by the model variants."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Protocol, Sequence, Tuple

import numpy as np

from posenet.types import NUM_KEYPOINTS, ModelOutputs

logger = logging.getLogger(__name__)

OUTPUT_FIELDS = ("heatmap_scores", "offsets", "displacement_fwd", "displacement_bwd")


class BaseModel(Protocol):
    """Protocol for PoseNet network variants.

    Implementations own a runtime session for one checkpoint and turn a
    padded, resized RGB image into the four raw PoseNet output tensors.
    """

    @property
    def input_resolution(self) -> int:
        ...

    @property
    def output_stride(self) -> int:
        ...

    def initialize(self, device: str = "cpu") -> None:
        """Create the runtime session."""
        ...

    def predict(self, image: np.ndarray) -> ModelOutputs:
        """Run the forward pass on an (R, R, 3) RGB image in [0, 255]."""
        ...

    def dispose(self) -> None:
        """Release the runtime session. Safe to call more than once."""
        ...


def require_onnxruntime() -> Any:
    """Import onnxruntime or fail with an install hint."""
    try:
        import onnxruntime as ort
    except ImportError as exc:
        raise ImportError(
            "onnxruntime is required to run PoseNet models. "
            "Install with: pip install onnxruntime (or onnxruntime-gpu)"
        ) from exc
    return ort


def resolve_providers(device: str) -> List[str]:
    """Map a device string to ONNX Runtime execution providers."""
    if "cpu" in device.lower():
        return ["CPUExecutionProvider"]
    return ["CUDAExecutionProvider", "CPUExecutionProvider"]


def create_session(model_path: Path, device: str = "cpu") -> Any:
    ort = require_onnxruntime()
    model_path = Path(model_path)
    if not model_path.exists():
        raise FileNotFoundError(f"ONNX model not found at {model_path}")

    providers = resolve_providers(device)
    available = set(ort.get_available_providers())
    usable = [p for p in providers if p in available] or ["CPUExecutionProvider"]
    if usable != providers:
        logger.warning(
            "Requested providers %s unavailable, using %s", providers, usable
        )
    return ort.InferenceSession(str(model_path), providers=usable)


def match_output_names(
    output_names: Sequence[str],
    patterns: Mapping[str, Tuple[str, ...]],
) -> Dict[str, str]:
    """Assign graph output names to PoseNet output fields.

    Each field takes the first graph output whose name contains one of its
    patterns (case-insensitive).

    Raises:
        RuntimeError: If a field has no matching graph output.
    """
    resolved: Dict[str, str] = {}
    for field_name in OUTPUT_FIELDS:
        for pattern in patterns[field_name]:
            match = next(
                (n for n in output_names
                 if pattern in n.lower() and n not in resolved.values()),
                None,
            )
            if match is not None:
                resolved[field_name] = match
                break
        else:
            raise RuntimeError(
                f"Model has no output for '{field_name}'. "
                f"Expected a name containing one of {list(patterns[field_name])}, "
                f"got {list(output_names)}."
            )
    return resolved


def sigmoid(x: np.ndarray) -> np.ndarray:
    return 1.0 / (1.0 + np.exp(-x))


def build_outputs(
    named: Mapping[str, np.ndarray], output_map: Mapping[str, str]
) -> ModelOutputs:
    """Strip the batch axis, check channel counts and apply sigmoid to the heatmaps."""
    arrays = {}
    for field_name, graph_name in output_map.items():
        value = np.asarray(named[graph_name], dtype=np.float32)
        if value.ndim == 4:
            value = value[0]
        if value.ndim != 3:
            raise RuntimeError(
                f"Unexpected shape {value.shape} for output '{graph_name}'"
            )
        arrays[field_name] = value

    # 17 heatmaps, 17 (y, x) offset pairs
    expected_channels = {
        "heatmap_scores": NUM_KEYPOINTS,
        "offsets": 2 * NUM_KEYPOINTS,
    }
    for field_name, channels in expected_channels.items():
        if arrays[field_name].shape[2] != channels:
            raise RuntimeError(
                f"Output '{output_map[field_name]}' has "
                f"{arrays[field_name].shape[2]} channels, expected {channels} "
                f"for {field_name}"
            )

    return ModelOutputs(
        heatmap_scores=sigmoid(arrays["heatmap_scores"]),
        offsets=arrays["offsets"],
        displacement_fwd=arrays["displacement_fwd"],
        displacement_bwd=arrays["displacement_bwd"],
    )


__all__ = [
    "BaseModel",
    "OUTPUT_FIELDS",
    "require_onnxruntime",
    "resolve_providers",
    "create_session",
    "match_output_names",
    "sigmoid",
    "build_outputs",
]
