from __future__ import annotations

import json
import os
import stat
from pathlib import Path
from typing import Any, Dict, List

import pytest
import requests

from tp_export.core.auth import AuthError, TrainingPeaksAuth
from tp_export.core.constants import TP_API_BASE


class DummyGetResponse:
    def __init__(self, status_code: int, payload: Any) -> None:
        self.status_code = status_code
        self._payload = payload

    def json(self) -> Any:
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


def _auth(tmp_path: Path, **kwargs: Any) -> TrainingPeaksAuth:
    return TrainingPeaksAuth(config={"auth": {}}, cookie_file=tmp_path / "cookies.json", **kwargs)


def test_cookies_to_jar_handles_alternate_keys() -> None:
    jar = TrainingPeaksAuth._cookies_to_jar(
        [{"name": "a", "value": "1"}, {"Name": "b", "Value": "2"}, {"name": "c"}, "junk"]  # type: ignore[list-item]
    )
    assert jar == {"a": "1", "b": "2"}


def test_try_token_success(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    seen: Dict[str, Any] = {}

    def fake_get(url: str, **kwargs: Any) -> DummyGetResponse:
        seen["url"] = url
        seen["cookies"] = kwargs["cookies"]
        return DummyGetResponse(200, {"success": True, "token": {"access_token": "abc"}})

    monkeypatch.setattr("tp_export.core.auth.requests.get", fake_get)
    assert _auth(tmp_path)._try_token({"sid": "x"}) == "abc"
    assert seen == {"url": f"{TP_API_BASE}/users/v3/token", "cookies": {"sid": "x"}}


@pytest.mark.parametrize(
    "response",
    [
        DummyGetResponse(401, {"success": False}),
        DummyGetResponse(200, {"success": False}),
        DummyGetResponse(200, ValueError("not json")),
    ],
)
def test_try_token_failures_return_none(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, response: DummyGetResponse
) -> None:
    monkeypatch.setattr("tp_export.core.auth.requests.get", lambda *_, **__: response)
    assert _auth(tmp_path)._try_token({}) is None


def test_try_token_network_error_returns_none(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    def boom(*_: Any, **__: Any) -> DummyGetResponse:
        raise requests.ConnectionError("offline")

    monkeypatch.setattr("tp_export.core.auth.requests.get", boom)
    assert _auth(tmp_path)._try_token({}) is None


def test_load_local_cookies_missing_returns_none(tmp_path: Path) -> None:
    assert _auth(tmp_path)._load_local_cookies() is None


def test_load_local_cookies_ignores_corrupt_file(tmp_path: Path) -> None:
    (tmp_path / "cookies.json").write_text("{not json")
    assert _auth(tmp_path)._load_local_cookies() is None


def test_save_local_cookies_is_private(tmp_path: Path) -> None:
    auth = TrainingPeaksAuth(config={}, cookie_file=tmp_path / "nested" / "cookies.json")
    auth._save_local_cookies([{"name": "sid", "value": "1"}])

    assert json.loads(auth.cookie_file.read_text()) == [{"name": "sid", "value": "1"}]
    assert stat.S_IMODE(os.stat(auth.cookie_file).st_mode) == 0o600
    assert auth._load_local_cookies() == [{"name": "sid", "value": "1"}]


def test_resolve_credentials_from_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("TP_USERNAME", "rider")
    monkeypatch.setenv("TP_PASSWORD", "secret")
    assert _auth(tmp_path)._resolve_credentials() == ("rider", "secret")


def test_resolve_credentials_missing_raises(tmp_path: Path) -> None:
    with pytest.raises(AuthError, match="Missing credentials"):
        _auth(tmp_path, username="rider")._resolve_credentials()


def test_login_prefers_access_token_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("TP_ACCESS_TOKEN", "env-token")
    auth = _auth(tmp_path)
    monkeypatch.setattr(auth, "login_playwright", lambda: (_ for _ in ()).throw(RuntimeError("no")))

    assert auth.login() == ("env-token", {})


def test_login_uses_cached_local_cookies(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    auth = _auth(tmp_path)
    auth._save_local_cookies([{"name": "sid", "value": "cached"}])
    monkeypatch.setattr(auth, "_try_token", lambda jar: "token-2" if jar == {"sid": "cached"} else None)
    monkeypatch.setattr(auth, "login_playwright", lambda: (_ for _ in ()).throw(RuntimeError("no")))

    assert auth.login() == ("token-2", {"sid": "cached"})


def test_login_falls_back_to_browser_when_cache_expired(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    auth = _auth(tmp_path)
    auth._save_local_cookies([{"name": "sid", "value": "stale"}])
    monkeypatch.setattr(auth, "login_playwright", lambda: [{"name": "sid", "value": "fresh"}])
    monkeypatch.setattr(auth, "_try_token", lambda jar: "token-3" if jar == {"sid": "fresh"} else None)

    assert auth.login() == ("token-3", {"sid": "fresh"})


def test_login_force_skips_env_and_cache(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("TP_ACCESS_TOKEN", "env-token")
    auth = _auth(tmp_path)
    calls: List[str] = []
    monkeypatch.setattr(auth, "_load_local_cookies", lambda: calls.append("cache"))
    monkeypatch.setattr(auth, "login_playwright", lambda: [{"name": "sid", "value": "fresh"}])
    monkeypatch.setattr(auth, "_try_token", lambda jar: "token-4")

    assert auth.login(force=True) == ("token-4", {"sid": "fresh"})
    assert calls == []


def test_login_raises_when_exchange_fails(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    auth = _auth(tmp_path)
    monkeypatch.setattr(auth, "login_playwright", lambda: [{"name": "sid", "value": "fresh"}])
    monkeypatch.setattr(auth, "_try_token", lambda jar: None)

    with pytest.raises(AuthError, match="bearer token"):
        auth.login()


def test_logout_removes_cookie_file(tmp_path: Path) -> None:
    auth = _auth(tmp_path)
    auth._save_local_cookies([{"name": "sid", "value": "1"}])

    assert auth.logout() is True
    assert not auth.cookie_file.exists()
    assert auth.logout() is False
