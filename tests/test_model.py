"""Tests for posenet.model — inference orchestration and model loading."""

import sys

import numpy as np
import pytest

import posenet
from posenet.backends.mobilenet import MobileNetV1Model
from posenet.backends.resnet import ResNet50Model
from posenet.config import (
    Architecture,
    ConfigError,
    DEFAULT_RESNET_CONFIG,
    InferenceConfig,
    ModelConfig,
    SINGLE_PERSON_INFERENCE_CONFIG,
)
from posenet.model import PoseNet, load, load_mobilenet, load_resnet
from posenet.types import Padding

from helpers import FakeDecoder, MockModel, make_pose


# ── Mocks ──


class FailingDecoder(FakeDecoder):
    def decode_multiple_poses(self, *args, **kwargs):
        raise ValueError("decoder failed")


def _mobilenet_config(stride=16, resolution=257, multiplier=0.75):
    return ModelConfig(
        architecture=Architecture.MOBILENET_V1,
        output_stride=stride,
        input_resolution=resolution,
        multiplier=multiplier,
    )


# ── Inference ──


class TestInfer:
    def test_raw_outputs_and_padding(self, mock_model, landscape_image):
        net = PoseNet(mock_model)

        result = net.infer(landscape_image)

        assert result.height == 480
        assert result.width == 640
        assert result.resized_height == 257
        assert result.resized_width == 257
        assert result.output_stride == 16
        assert result.padding == Padding(top=80, bottom=80, left=0, right=0)
        assert result.outputs.heatmap_scores.shape == (17, 17, 17)
        assert mock_model.inputs[0].shape == (257, 257, 3)

    def test_invalid_stride_fails_before_predict(self, landscape_image):
        model = MockModel(input_resolution=257, output_stride=12)
        net = PoseNet(model)

        with pytest.raises(ConfigError):
            net.infer(landscape_image)
        assert model.inputs == []

    def test_incompatible_resolution_fails_before_predict(self, landscape_image):
        model = MockModel(input_resolution=256, output_stride=16)
        with pytest.raises(ConfigError, match="not compatible"):
            PoseNet(model).infer(landscape_image)
        assert model.inputs == []

    def test_infer_after_dispose(self, mock_model, landscape_image):
        net = PoseNet(mock_model)
        net.dispose()
        with pytest.raises(RuntimeError, match="disposed"):
            net.infer(landscape_image)


class TestEstimatePoses:
    def test_center_maps_to_image_center(self, mock_model, fake_decoder, landscape_image):
        net = PoseNet(mock_model, fake_decoder)

        [pose] = net.estimate_poses(landscape_image)

        for kp in pose.keypoints:
            assert kp.position.x == pytest.approx(320.0)
            assert kp.position.y == pytest.approx(240.0)
        assert pose.score == 0.9

    def test_flip_horizontal(self, mock_model, fake_decoder, landscape_image):
        net = PoseNet(mock_model, fake_decoder)
        config = InferenceConfig.multi_person(flip_horizontal=True)

        [pose] = net.estimate_poses(landscape_image, config)

        assert pose.keypoints[0].position.x == pytest.approx(319.0)
        assert pose.keypoints[0].position.y == pytest.approx(240.0)

    def test_single_person(self, mock_model, fake_decoder, landscape_image):
        net = PoseNet(mock_model, fake_decoder)

        poses = net.estimate_poses(landscape_image, SINGLE_PERSON_INFERENCE_CONFIG)

        assert len(poses) == 1
        assert fake_decoder.single_calls == [((17, 17, 17), (17, 17, 34), 16)]

    def test_multi_person_parameters_reach_decoder(self, mock_model, fake_decoder, landscape_image):
        net = PoseNet(mock_model, fake_decoder)
        config = InferenceConfig.multi_person(max_detections=2, score_threshold=0.3, nms_radius=30)

        net.estimate_poses(landscape_image, config)

        assert fake_decoder.multi_calls == [
            dict(output_stride=16, max_detections=2, score_threshold=0.3, nms_radius=30)
        ]

    def test_outputs_released(self, mock_model, fake_decoder, landscape_image):
        net = PoseNet(mock_model, fake_decoder)
        net.estimate_poses(landscape_image)
        assert mock_model.returned[0].released

    def test_outputs_released_when_decoder_fails(self, mock_model, landscape_image):
        net = PoseNet(mock_model, FailingDecoder())

        with pytest.raises(ValueError, match="decoder failed"):
            net.estimate_poses(landscape_image)
        assert mock_model.returned[0].released

    def test_no_decoder(self, mock_model, landscape_image):
        net = PoseNet(mock_model)
        with pytest.raises(RuntimeError, match="No decoder configured"):
            net.estimate_poses(landscape_image)
        assert mock_model.inputs == []

    def test_grayscale_image(self, mock_model, fake_decoder):
        net = PoseNet(mock_model, fake_decoder)
        poses = net.estimate_poses(np.zeros((257, 257), dtype=np.uint8))
        assert poses[0].keypoints[0].position.x == pytest.approx(128.5)


class TestDispose:
    def test_dispose_twice(self, mock_model):
        net = PoseNet(mock_model)
        net.dispose()
        net.dispose()
        assert mock_model.dispose_count == 1

    def test_context_manager(self, mock_model):
        with PoseNet(mock_model) as net:
            assert net.input_resolution == 257
            assert net.output_stride == 16
        assert mock_model.dispose_count == 1


# ── Loading ──


class TestLoad:
    def test_load_mobilenet(self, models_dir, fake_sessions, fake_decoder):
        net = load(_mobilenet_config(multiplier=0.5), decoder=fake_decoder, models_dir=models_dir)

        assert isinstance(net.base_model, MobileNetV1Model)
        assert net.base_model.multiplier == 0.5
        assert net.input_resolution == 257
        assert net.output_stride == 16
        assert net.decoder is fake_decoder
        assert len(fake_sessions) == 1

    def test_load_resnet(self, models_dir, fake_sessions, fake_decoder):
        net = load(DEFAULT_RESNET_CONFIG, decoder=fake_decoder, models_dir=models_dir)

        assert isinstance(net.base_model, ResNet50Model)
        assert net.output_stride == 32
        assert net.input_resolution == 257

    def test_end_to_end(self, models_dir, fake_sessions, fake_decoder, landscape_image):
        with load(_mobilenet_config(), decoder=fake_decoder, models_dir=models_dir) as net:
            [pose] = net.estimate_poses(landscape_image)

        assert pose.keypoints[0].position.x == pytest.approx(320.0)
        assert fake_sessions[0].feeds[0]["sub_2"].shape == (1, 257, 257, 3)

    def test_unsupported_config(self, models_dir, fake_sessions):
        with pytest.raises(ConfigError):
            load(_mobilenet_config(multiplier=1.01), models_dir=models_dir)
        assert fake_sessions == []

    def test_missing_checkpoint(self, tmp_path, fake_sessions, fake_decoder):
        with pytest.raises(FileNotFoundError, match="posenet fetch"):
            load(_mobilenet_config(), decoder=fake_decoder, models_dir=tmp_path)
        assert fake_sessions == []

    def test_runtime_missing(self, models_dir, monkeypatch, fake_decoder):
        monkeypatch.setitem(sys.modules, "onnxruntime", None)
        with pytest.raises(ImportError, match="onnxruntime"):
            load(_mobilenet_config(), decoder=fake_decoder, models_dir=models_dir)

    def test_architecture_mismatch(self, models_dir):
        with pytest.raises(ConfigError):
            load_mobilenet(DEFAULT_RESNET_CONFIG, models_dir=models_dir)
        with pytest.raises(ConfigError):
            load_resnet(_mobilenet_config(), models_dir=models_dir)

    def test_decoder_by_name(self, models_dir, fake_sessions, monkeypatch):
        decoder = FakeDecoder([make_pose(1.0, 1.0)])
        requested = []

        def _load_decoder(name):
            requested.append(name)
            return decoder

        monkeypatch.setattr("posenet.model.load_decoder", _load_decoder)

        net = load(_mobilenet_config(), decoder="greedy", models_dir=models_dir)

        assert requested == ["greedy"]
        assert net.decoder is decoder

    def test_no_registered_decoder(self, models_dir, fake_sessions, monkeypatch):
        monkeypatch.setattr("posenet.model.discover_decoders", lambda: {})

        net = load(_mobilenet_config(), models_dir=models_dir)

        assert net.decoder is None

    def test_first_registered_decoder(self, models_dir, fake_sessions, monkeypatch):
        monkeypatch.setattr(
            "posenet.model.discover_decoders", lambda: {"zeta": object(), "alpha": object()}
        )
        requested = []

        def _load_decoder(name):
            requested.append(name)
            return FakeDecoder([])

        monkeypatch.setattr("posenet.model.load_decoder", _load_decoder)

        net = load(_mobilenet_config(), models_dir=models_dir)

        assert requested == ["alpha"]
        assert isinstance(net.decoder, FakeDecoder)

    def test_package_exports(self):
        assert posenet.load is load
        assert posenet.PoseNet is PoseNet
