from __future__ import annotations

import pytest

from vidtube.config import get_settings
from vidtube.utils.log import redact, redact_event


def test_log_redaction_tokens() -> None:
    jwt = "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9.aaaa.bbbb"
    s = redact(f"Authorization: Bearer {jwt}")
    assert jwt not in s

    s = redact("cookie: accessToken=abc.def.ghi; refreshToken=zzz123")
    assert "abc.def.ghi" not in s
    assert "zzz123" not in s

    s = redact("password=hunter2 api_key=k-123")
    assert "hunter2" not in s
    assert "k-123" not in s

    s = redact("fetch https://user:pw@media.example/x")
    assert "user:pw" not in s


def test_log_redaction_secret_literals(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CLOUDINARY_API_SECRET", "super-secret-cloud-value-12345")
    get_settings.cache_clear()
    s = redact("upload signed with super-secret-cloud-value-12345")
    assert "super-secret-cloud-value-12345" not in s


def test_redact_event_only_touches_strings() -> None:
    ev = {"event": "x", "token": "Bearer abcdef", "n": 3}
    out = redact_event(None, None, ev)
    assert out["token"] == "Bearer ***REDACTED***"
    assert out["n"] == 3
