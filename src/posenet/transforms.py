"""Coordinate transforms applied to decoded poses."""

from typing import List, Sequence

from posenet.types import Keypoint, Padding, Pose, Position


def scale_pose(
    pose: Pose,
    scale_y: float,
    scale_x: float,
    offset_y: float = 0.0,
    offset_x: float = 0.0,
) -> Pose:
    """Return a copy of ``pose`` with every position scaled then offset."""
    return Pose(
        keypoints=[
            Keypoint(
                part=kp.part,
                position=Position(
                    x=kp.position.x * scale_x + offset_x,
                    y=kp.position.y * scale_y + offset_y,
                ),
                score=kp.score,
            )
            for kp in pose.keypoints
        ],
        score=pose.score,
    )


def scale_poses(
    poses: Sequence[Pose],
    scale_y: float,
    scale_x: float,
    offset_y: float = 0.0,
    offset_x: float = 0.0,
) -> List[Pose]:
    if scale_y == 1 and scale_x == 1 and offset_y == 0 and offset_x == 0:
        return list(poses)
    return [scale_pose(p, scale_y, scale_x, offset_y, offset_x) for p in poses]


def scale_poses_to_image(
    poses: Sequence[Pose],
    height: int,
    width: int,
    padding: Padding,
    resized_height: int,
    resized_width: int,
) -> List[Pose]:
    """Map poses from model input space back to the original image.

    The model saw the image padded by ``padding`` and resized to
    (resized_height, resized_width). Positions are scaled to the padded frame,
    then shifted by the top/left padding.
    """
    scale_y = (height + padding.top + padding.bottom) / resized_height
    scale_x = (width + padding.left + padding.right) / resized_width
    return scale_poses(poses, scale_y, scale_x, -padding.top, -padding.left)


def flip_pose_horizontal(pose: Pose, image_width: int) -> Pose:
    return Pose(
        keypoints=[
            Keypoint(
                part=kp.part,
                position=Position(x=image_width - 1 - kp.position.x, y=kp.position.y),
                score=kp.score,
            )
            for kp in pose.keypoints
        ],
        score=pose.score,
    )


def flip_poses_horizontal(poses: Sequence[Pose], image_width: int) -> List[Pose]:
    """Mirror poses around the vertical center line of an image.

    Applying it twice with the same width returns the original positions.
    """
    return [flip_pose_horizontal(p, image_width) for p in poses]


__all__ = [
    "scale_pose",
    "scale_poses",
    "scale_poses_to_image",
    "flip_pose_horizontal",
    "flip_poses_horizontal",
]
