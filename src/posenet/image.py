"""Input image preparation: channel normalization, padding and resizing."""

import math
from typing import Tuple

import numpy as np

from posenet.types import Padding


def to_rgb_array(image: np.ndarray) -> np.ndarray:
    """Return ``image`` as an (H, W, 3) array.

    Grayscale inputs are replicated across channels, an alpha channel is
    dropped. The dtype is preserved.

    Raises:
        ValueError: If the shape is not an image shape.
    """
    image = np.asarray(image)
    if image.ndim == 2:
        return np.repeat(image[:, :, np.newaxis], 3, axis=2)
    if image.ndim != 3:
        raise ValueError(
            f"Expected an image of shape (H, W) or (H, W, C), got {image.shape}"
        )
    channels = image.shape[2]
    if channels == 3:
        return image
    if channels == 1:
        return np.repeat(image, 3, axis=2)
    if channels == 4:
        return image[:, :, :3]
    raise ValueError(f"Expected 1, 3 or 4 channels, got {channels}")


def get_input_dimensions(image: np.ndarray) -> Tuple[int, int]:
    """Return (height, width) of an image array."""
    shape = np.shape(image)
    if len(shape) not in (2, 3):
        raise ValueError(
            f"Expected an image of shape (H, W) or (H, W, C), got {tuple(shape)}"
        )
    height, width = int(shape[0]), int(shape[1])
    if height == 0 or width == 0:
        raise ValueError(f"Image has an empty dimension: {tuple(shape)}")
    return height, width


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def compute_padding(
    height: int, width: int, target_height: int, target_width: int
) -> Padding:
    """Padding that brings (height, width) to the target aspect ratio.

    The short side is padded symmetrically, the long side is left untouched.
    Half pixels round up, so an odd difference pads one extra pixel overall.
    """
    target_aspect = target_width / target_height
    aspect = width / height
    if aspect < target_aspect:
        pad = _round_half_up(0.5 * (target_aspect * height - width))
        return Padding(top=0, bottom=0, left=pad, right=pad)
    pad = _round_half_up(0.5 * ((1.0 / target_aspect) * width - height))
    return Padding(top=pad, bottom=pad, left=0, right=0)


def pad_and_resize_to(
    image: np.ndarray, target_size: Tuple[int, int]
) -> Tuple[np.ndarray, Padding]:
    """Pad an RGB image to the target aspect ratio and resize it.

    Resized pixel (r, c) samples the padded image at (r * sy, c * sx), with
    sy = padded_height / target_height and sx = padded_width / target_width.
    :func:`posenet.transforms.scale_poses_to_image` applies the same mapping
    to bring keypoints back to the original image.

    Args:
        image: Image array, see :func:`to_rgb_array`.
        target_size: (target_height, target_width).

    Returns:
        (resized, padding): float32 array of shape (target_h, target_w, 3)
        and the padding applied before resizing, in original pixels.
    """
    import cv2

    target_height, target_width = target_size
    rgb = to_rgb_array(image)
    height, width = get_input_dimensions(rgb)
    padding = compute_padding(height, width, target_height, target_width)

    padded = cv2.copyMakeBorder(
        np.ascontiguousarray(rgb, dtype=np.float32),
        padding.top,
        padding.bottom,
        padding.left,
        padding.right,
        cv2.BORDER_CONSTANT,
        value=(0, 0, 0),
    )
    padded_height, padded_width = padded.shape[:2]
    # destination -> source, no half-pixel centers
    matrix = np.float32([
        [padded_width / target_width, 0, 0],
        [0, padded_height / target_height, 0],
    ])
    resized = cv2.warpAffine(
        padded,
        matrix,
        (target_width, target_height),
        flags=cv2.INTER_LINEAR | cv2.WARP_INVERSE_MAP,
        borderMode=cv2.BORDER_REPLICATE,
    )
    return resized, padding


__all__ = [
    "to_rgb_array",
    "get_input_dimensions",
    "compute_padding",
    "pad_and_resize_to",
]
