"""CLI for posenet: ``posenet info``, ``posenet fetch`` and ``posenet run``."""

import argparse
import json
import logging
import sys
from pathlib import Path

logger = logging.getLogger(__name__)


def _add_model_args(parser: argparse.ArgumentParser) -> None:
    """Add --architecture, --stride, --resolution, --multiplier args to a parser."""
    parser.add_argument(
        "--architecture", "-a",
        choices=["MobileNetV1", "ResNet50"],
        default="MobileNetV1",
        help="Network backbone (default: MobileNetV1)",
    )
    parser.add_argument(
        "--stride",
        type=int,
        default=None,
        help="Output stride (default: 16 for MobileNetV1, 32 for ResNet50)",
    )
    parser.add_argument(
        "--resolution",
        type=int,
        default=None,
        help="Input resolution (default: 513 for MobileNetV1, 257 for ResNet50)",
    )
    parser.add_argument(
        "--multiplier",
        type=float,
        default=None,
        help="MobileNetV1 depth multiplier (default: 0.75)",
    )
    parser.add_argument(
        "--models-dir",
        default=None,
        help="Directory of converted checkpoints (default: ~/.posenet/models)",
    )


def _add_verbose_arg(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="posenet",
        description="PoseNet pose estimation on ONNX Runtime",
    )
    sub = parser.add_subparsers(dest="command")

    # posenet info
    info_p = sub.add_parser("info", help="Show supported configurations and checkpoints")
    info_p.add_argument("--models-dir", default=None, help="Directory of converted checkpoints")
    _add_verbose_arg(info_p)

    # posenet fetch
    fetch_p = sub.add_parser("fetch", help="Download and convert a checkpoint to ONNX")
    _add_model_args(fetch_p)
    fetch_p.add_argument(
        "--all",
        action="store_true",
        help="Fetch every published checkpoint",
    )
    fetch_p.add_argument(
        "--force",
        action="store_true",
        help="Re-fetch even if the ONNX file exists",
    )
    _add_verbose_arg(fetch_p)

    # posenet run
    run_p = sub.add_parser("run", help="Estimate poses in an image")
    run_p.add_argument("image", help="Input image path")
    _add_model_args(run_p)
    run_p.add_argument(
        "--decoding",
        choices=["single-person", "multi-person"],
        default="multi-person",
        help="Decoding method (default: multi-person)",
    )
    run_p.add_argument("--max-detections", type=int, default=5)
    run_p.add_argument("--score-threshold", type=float, default=0.5)
    run_p.add_argument("--nms-radius", type=float, default=20)
    run_p.add_argument(
        "--flip",
        action="store_true",
        help="Mirror poses horizontally (webcam input)",
    )
    run_p.add_argument(
        "--decoder",
        default=None,
        help="Registered decoder name (default: first registered)",
    )
    run_p.add_argument(
        "--raw",
        default=None,
        metavar="OUT.npz",
        help="Save raw network outputs instead of decoding",
    )
    run_p.add_argument(
        "-o", "--output",
        default=None,
        help="Write poses JSON to a file instead of stdout",
    )
    run_p.add_argument("--device", default="cpu", help="cpu or cuda[:N] (default: cpu)")
    _add_verbose_arg(run_p)

    return parser


def _model_config_from_args(args: argparse.Namespace):
    from posenet.config import (
        Architecture,
        DEFAULT_MOBILENET_V1_CONFIG,
        DEFAULT_RESNET_CONFIG,
        ModelConfig,
    )

    if args.architecture == Architecture.RESNET50.value:
        defaults = DEFAULT_RESNET_CONFIG
    else:
        defaults = DEFAULT_MOBILENET_V1_CONFIG

    return ModelConfig(
        architecture=args.architecture,
        output_stride=args.stride if args.stride is not None else defaults.output_stride,
        input_resolution=(
            args.resolution if args.resolution is not None else defaults.input_resolution
        ),
        multiplier=args.multiplier if args.multiplier is not None else defaults.multiplier,
    )


def _inference_config_from_args(args: argparse.Namespace):
    from posenet.config import InferenceConfig

    if args.decoding == "single-person":
        return InferenceConfig.single_person(flip_horizontal=args.flip)
    return InferenceConfig.multi_person(
        max_detections=args.max_detections,
        score_threshold=args.score_threshold,
        nms_radius=args.nms_radius,
        flip_horizontal=args.flip,
    )


def _cmd_info(args: argparse.Namespace) -> None:
    """Handle ``posenet info``."""
    from posenet.checkpoints import checkpoint_path, get_checkpoint
    from posenet.config import iter_supported_configs
    from posenet.decoding import discover_decoders

    models_dir = Path(args.models_dir) if args.models_dir else None

    print("Supported configurations:")
    seen = {}
    for config in iter_supported_configs():
        checkpoint = get_checkpoint(config)
        seen.setdefault(checkpoint.name, (checkpoint, []))[1].append(config.input_resolution)

    for name, (checkpoint, resolutions) in seen.items():
        present = checkpoint_path(checkpoint, models_dir).exists()
        status = "ok" if present else "missing"
        print(f"  {name:28s} [{status:7s}] resolutions={resolutions}")
        if args.verbose:
            print(f"    {checkpoint.url}")

    decoders = discover_decoders()
    print("\nDecoders:")
    if not decoders:
        print("  (none registered)")
    for name in sorted(decoders):
        print(f"  {name:20s}  {decoders[name].value}")


def _cmd_fetch(args: argparse.Namespace) -> None:
    """Handle ``posenet fetch``."""
    from posenet.checkpoints import fetch_checkpoint, get_checkpoint
    from posenet.config import ConfigError, iter_supported_configs, validate_model_config

    models_dir = Path(args.models_dir) if args.models_dir else None

    if args.all:
        checkpoints = {}
        for config in iter_supported_configs():
            checkpoint = get_checkpoint(config)
            checkpoints[checkpoint.name] = checkpoint
        targets = list(checkpoints.values())
    else:
        try:
            config = _model_config_from_args(args)
            validate_model_config(config)
        except ConfigError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
        targets = [get_checkpoint(config)]

    for checkpoint in targets:
        try:
            path = fetch_checkpoint(checkpoint, models_dir, force=args.force)
        except (ImportError, RuntimeError) as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
        print(f"  {checkpoint.name} -> {path}")


def _read_image_rgb(path: str):
    import cv2

    image = cv2.imread(path, cv2.IMREAD_COLOR)
    if image is None:
        return None
    return cv2.cvtColor(image, cv2.COLOR_BGR2RGB)


def _cmd_run(args: argparse.Namespace) -> None:
    """Handle ``posenet run``."""
    import posenet
    from posenet.config import ConfigError

    image = _read_image_rgb(args.image)
    if image is None:
        print(f"Error: cannot read image {args.image}", file=sys.stderr)
        sys.exit(1)

    try:
        model_config = _model_config_from_args(args)
        inference_config = _inference_config_from_args(args)
        net = posenet.load(
            model_config,
            decoder=args.decoder,
            models_dir=Path(args.models_dir) if args.models_dir else None,
            device=args.device,
        )
    except (ConfigError, ImportError, FileNotFoundError, KeyError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    with net:
        if args.raw:
            import numpy as np

            result = net.infer(image)
            try:
                np.savez(
                    args.raw,
                    **result.outputs.as_dict(),
                    padding=np.array(
                        [result.padding.top, result.padding.bottom,
                         result.padding.left, result.padding.right]
                    ),
                    image_size=np.array([result.height, result.width]),
                    output_stride=np.array(result.output_stride),
                )
            finally:
                result.outputs.release()
            print(f"Saved raw outputs to {args.raw}")
            return

        try:
            poses = net.estimate_poses(image, inference_config)
        except RuntimeError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)

    payload = json.dumps([p.to_dict() for p in poses], indent=2)
    if args.output:
        Path(args.output).write_text(payload)
        print(f"Wrote {len(poses)} poses to {args.output}")
    else:
        print(payload)


def main():
    """Entry point for ``posenet`` CLI."""
    parser = _build_parser()
    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if getattr(args, "verbose", False):
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=logging.INFO)

    if args.command == "info":
        _cmd_info(args)
    elif args.command == "fetch":
        _cmd_fetch(args)
    elif args.command == "run":
        _cmd_run(args)


if __name__ == "__main__":
    main()
