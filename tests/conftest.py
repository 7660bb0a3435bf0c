from __future__ import annotations

from pathlib import Path
from typing import Callable, List

import pytest

from bgblur.algorithms import onnx_base
from bgblur.pipeline import MODEL_REGISTRY
from helpers import FakeSession


@pytest.fixture
def install_session(monkeypatch):
    """Route ``ort.InferenceSession`` to a factory of fake sessions.

    Returns a function taking the factory; it returns the list that collects
    every session created afterwards.
    """

    def install(factory: Callable[[], FakeSession]) -> List[FakeSession]:
        created: List[FakeSession] = []

        def fake_inference_session(path, sess_options=None, providers=None, provider_options=None):
            session = factory()
            session.path = path
            session.sess_options = sess_options
            session.requested_providers = list(providers or [])
            created.append(session)
            return session

        monkeypatch.setattr(onnx_base.ort, "InferenceSession", fake_inference_session)
        return created

    return install


@pytest.fixture
def models_dir(tmp_path: Path) -> Path:
    root = tmp_path / "models"
    root.mkdir()
    for model_cls in MODEL_REGISTRY.values():
        (root / model_cls.MODEL_FILE).write_bytes(b"onnx")
    return root
