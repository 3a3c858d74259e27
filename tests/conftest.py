"""Shared fixtures for posenet tests.

All sessions and decoders are fakes — NO ONNX models needed.
"""

import numpy as np
import pytest

from helpers import (
    FakeDecoder,
    FakeSession,
    MOBILENET_OUTPUT_NAMES,
    MockModel,
    RESNET_OUTPUT_NAMES,
    make_pose,
)


@pytest.fixture
def mock_model():
    return MockModel()


@pytest.fixture
def fake_decoder():
    return FakeDecoder([make_pose(128.5, 128.5)])


@pytest.fixture
def landscape_image():
    """480x640 RGB image."""
    return np.full((480, 640, 3), 100, dtype=np.uint8)


@pytest.fixture
def models_dir(tmp_path):
    """Models directory with every published checkpoint present as a stub file."""
    from posenet.checkpoints import MOBILENET_CHECKPOINTS, RESNET50_CHECKPOINTS, checkpoint_path

    for table in (MOBILENET_CHECKPOINTS, RESNET50_CHECKPOINTS):
        for by_stride in table.values():
            for checkpoint in by_stride.values():
                path = checkpoint_path(checkpoint, tmp_path)
                path.parent.mkdir(parents=True, exist_ok=True)
                path.write_bytes(b"onnx")
    return tmp_path


@pytest.fixture
def fake_sessions(monkeypatch):
    """Route both variants' create_session to FakeSession; returns created sessions."""
    created: list = []

    def _factory(output_names):
        def _create(model_path, device="cpu"):
            session = FakeSession(output_names, resolution=257, stride=16)
            created.append(session)
            return session
        return _create

    monkeypatch.setattr(
        "posenet.backends.mobilenet.create_session", _factory(MOBILENET_OUTPUT_NAMES)
    )
    monkeypatch.setattr(
        "posenet.backends.resnet.create_session", _factory(RESNET_OUTPUT_NAMES)
    )
    return created
