from __future__ import annotations

import os
import tempfile
from collections.abc import Iterator

# The structlog file handler is bound at import time; keep it out of the repo tree.
os.environ.setdefault("VIDTUBE_LOG_DIR", tempfile.mkdtemp(prefix="vidtube_logs_"))

import pytest  # noqa: E402

from tests._helpers.media import FakeUploader  # noqa: E402
from vidtube.config import get_settings  # noqa: E402

ACCESS_SECRET = "test-access-secret-Aa1!-0123456789abcdef"
REFRESH_SECRET = "test-refresh-secret-Bb2!-0123456789abcdef"


@pytest.fixture(autouse=True)
def _test_env(
    tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch
) -> Iterator[None]:
    root = tmp_path_factory.mktemp("vt_test")
    (root / "logs").mkdir(parents=True, exist_ok=True)
    (root / "_state").mkdir(parents=True, exist_ok=True)
    (root / "temp").mkdir(parents=True, exist_ok=True)

    monkeypatch.setenv("APP_ROOT", str(root))
    monkeypatch.setenv("VIDTUBE_LOG_DIR", str(root / "logs"))
    monkeypatch.setenv("VIDTUBE_STATE_DIR", str(root / "_state"))
    monkeypatch.setenv("VIDTUBE_TEMP_DIR", str(root / "temp"))
    monkeypatch.setenv("ACCESS_TOKEN_SECRET", ACCESS_SECRET)
    monkeypatch.setenv("REFRESH_TOKEN_SECRET", REFRESH_SECRET)
    monkeypatch.setenv("COOKIE_SECURE", "0")
    monkeypatch.delenv("STRICT_SECRETS", raising=False)
    monkeypatch.delenv("ENV", raising=False)
    monkeypatch.delenv("APP_ENV", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def fake_uploader(_test_env: None) -> FakeUploader:
    from vidtube.server import app

    up = FakeUploader()
    app.state.uploader = up
    return up
