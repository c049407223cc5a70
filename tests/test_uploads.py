import json
import logging

import httpx
import pytest

from app.errors import InvalidInput, InvalidOrExpiredToken, RelayFailed
from app.gist import GistClient
from app.paths import UploadedFile
from app.uploads import UploadOrchestrator


def build_orchestrator(manager, calls, status_code=201):
    def handler(request):
        calls.append(request)
        return httpx.Response(status_code, json={"html_url": f"https://gist.github.com/u/{len(calls)}"})

    gists = GistClient("ghp_test", transport=httpx.MockTransport(handler))
    return UploadOrchestrator(manager, gists)


FILES = [
    UploadedFile(name="a/b/c.txt", content=b"c"),
    UploadedFile(name="e.txt", content=b"e"),
]


def test_upload_consumes_token_with_audit_metadata(manager, repository):
    calls = []
    orchestrator = build_orchestrator(manager, calls)
    token = manager.issue().token

    url = orchestrator.upload(token, FILES)

    assert url == "https://gist.github.com/u/1"
    row = repository.get_token(token)
    assert row["used"] is True
    assert row["gist_url"] == url
    assert row["file_names"] == ["a/b/c.txt", "e.txt"]
    assert row["contains_folders"] is True


def test_upload_requires_token_and_files(manager):
    orchestrator = build_orchestrator(manager, [])
    token = manager.issue().token

    with pytest.raises(InvalidInput):
        orchestrator.upload("", FILES)
    with pytest.raises(InvalidInput):
        orchestrator.upload(token, [])


def test_upload_after_window_is_rejected_before_relay(manager, repository, clock):
    calls = []
    orchestrator = build_orchestrator(manager, calls)
    token = manager.issue().token

    clock.advance(hours=25)

    with pytest.raises(InvalidOrExpiredToken):
        orchestrator.upload(token, FILES)
    assert calls == []
    assert repository.get_token(token)["expired"] is True


def test_replayed_upload_is_rejected(manager):
    calls = []
    orchestrator = build_orchestrator(manager, calls)
    token = manager.issue().token

    orchestrator.upload(token, FILES)
    with pytest.raises(InvalidOrExpiredToken):
        orchestrator.upload(token, FILES)
    assert len(calls) == 1


def test_relay_failure_leaves_token_redeemable(manager):
    orchestrator = build_orchestrator(manager, [], status_code=500)
    token = manager.issue().token

    with pytest.raises(RelayFailed):
        orchestrator.upload(token, FILES)
    assert manager.validate(token) is True


def test_consume_race_after_relay_surfaces_error(manager, monkeypatch):
    calls = []
    orchestrator = build_orchestrator(manager, calls)
    token = manager.issue().token
    real_create = orchestrator.gists.create_gist

    def create_then_lose_race(grouping, **kwargs):
        url = real_create(grouping, **kwargs)
        manager.consume(token, "https://gist.github.com/u/winner", file_names=[], contains_folders=False)
        return url

    monkeypatch.setattr(orchestrator.gists, "create_gist", create_then_lose_race)

    with pytest.raises(InvalidOrExpiredToken):
        orchestrator.upload(token, FILES)
    assert len(calls) == 1
    assert manager.get(token).gist_url == "https://gist.github.com/u/winner"


def test_audit_names_match_renamed_gist_entries(manager, repository):
    calls = []
    orchestrator = build_orchestrator(manager, calls)
    token = manager.issue().token
    files = [
        UploadedFile(name="x/notes.txt", content=b"1"),
        UploadedFile(name="notes.txt", content=b"2", path="x"),
        UploadedFile(name="a\\b\\c.txt", content=b"3"),
    ]

    orchestrator.upload(token, files)

    sent = list(json.loads(calls[0].content)["files"])
    row = repository.get_token(token)
    assert sent == ["x/notes.txt", "x/notes (2).txt", "a/b/c.txt"]
    assert row["file_names"] == sent
    assert row["file_count"] == 3


def test_logs_do_not_contain_full_token(manager, caplog, monkeypatch):
    monkeypatch.setattr(logging.getLogger("app"), "propagate", True)
    caplog.set_level(logging.INFO)
    orchestrator = build_orchestrator(manager, [])
    token = manager.issue().token

    orchestrator.upload(token, FILES)
    with pytest.raises(InvalidOrExpiredToken):
        orchestrator.upload(token, FILES)

    assert caplog.records
    assert token not in caplog.text
    assert token[:3] + "..." in caplog.text
