"""Offline end-to-end run: two subscriptions with 120 posts each."""

import json
from urllib.parse import urlparse

import pytest
import requests

from app import Application
from conftest import FakePostsBackend, FakeResponse, FakeSession
from config import Config
from errors import AuthError

SUBSCRIPTIONS = [{"id": 11, "username": "alice"}, {"id": 22, "username": "bob"}]


@pytest.fixture
def config(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text('\n'.join([
        'output_dir_path = "downloads"',
        'auth_file_path = "auth.json"',
        'dynamic_rules = "rules.json"',
    ]), encoding="utf-8")
    return Config(str(path))


def install_session(monkeypatch, handler) -> FakeSession:
    session = FakeSession(handler)
    monkeypatch.setattr(requests, "Session", lambda: session)
    return session


def routes(backend, subscriptions=SUBSCRIPTIONS):
    def handler(method, url, kwargs):
        parsed = urlparse(url)
        if parsed.netloc == "cdn.example.com":
            return FakeResponse(content=b"media-bytes:" + parsed.path.encode())
        if parsed.path.endswith("/subscriptions/subscribes"):
            return FakeResponse(json_data=subscriptions)
        return backend.respond(url)
    return handler


def cdn_calls(session):
    return [url for _, url, _ in session.calls if "cdn.example.com" in url]


def test_full_run_then_idempotent_rerun(tmp_path, monkeypatch, config, credentials, rules):
    backend = FakePostsBackend({11: 120, 22: 120}, media_per_post=2)
    session = install_session(monkeypatch, routes(backend))
    app = Application(config, credentials, rules, log_dir=str(tmp_path / "log"))

    app.run()

    for user_id in (11, 22):
        assert sorted(backend.page_offsets[user_id]) == [0, 50, 100]
        folder = tmp_path / "downloads" / str(user_id)
        posts = json.loads((folder / "posts.json").read_text(encoding="utf-8"))
        assert len(posts) == 120
        media_ids = [m["id"] for p in posts for m in p["media"]]
        assert len(media_ids) == sum(len(p["media"]) for p in posts) == 240
        for media_id in media_ids:
            assert (folder / f"{media_id}.done").exists()
            assert (folder / f"{media_id}.jpg").stat().st_size > 0
        assert not (folder / "undownloaded.json").exists()
    assert len(cdn_calls(session)) == 480

    summary = json.loads((tmp_path / "log" / "processing_time_log.json").read_text(encoding="utf-8"))
    assert [(e["user_name"], e["processed_posts"], e["downloaded_media"]) for e in summary] == [
        ("alice", 120, 240), ("bob", 120, 240)]

    session.calls.clear()
    Application(config, credentials, rules, log_dir=str(tmp_path / "log")).run()

    assert cdn_calls(session) == []
    summary = json.loads((tmp_path / "log" / "processing_time_log.json").read_text(encoding="utf-8"))
    assert [(e["downloaded_media"], e["skipped_media"]) for e in summary[2:]] == [(0, 240), (0, 240)]


def test_only_user_filter(tmp_path, monkeypatch, config, credentials, rules):
    backend = FakePostsBackend({11: 3, 22: 3}, media_per_post=1)
    install_session(monkeypatch, routes(backend))

    Application(config, credentials, rules, only_user="bob", log_dir=str(tmp_path / "log")).run()

    assert backend.page_offsets[11] == []
    assert backend.page_offsets[22] == [0]


def test_failing_subscription_does_not_stop_others(tmp_path, monkeypatch, config, credentials, rules):
    backend = FakePostsBackend({22: 2}, media_per_post=1)

    def handler(method, url, kwargs):
        if "/users/11/" in url:
            return FakeResponse(json_data={"error": {"message": "Access denied"}})
        return routes(backend)(method, url, kwargs)

    install_session(monkeypatch, handler)

    Application(config, credentials, rules, log_dir=str(tmp_path / "log")).run()

    assert (tmp_path / "downloads" / "22" / "22000000.done").exists()


def test_auth_error_propagates(tmp_path, monkeypatch, config, credentials, rules):
    install_session(monkeypatch, lambda m, u, k: FakeResponse(json_data={"error": {"message": "Wrong user"}}))

    with pytest.raises(AuthError, match="Wrong user"):
        Application(config, credentials, rules, log_dir=str(tmp_path / "log")).run()
