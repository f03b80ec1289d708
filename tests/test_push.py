from __future__ import annotations

from types import SimpleNamespace

import pytest
from firebase_admin import messaging
from firebase_admin.exceptions import FirebaseError

from notify import core
from notify.core import DryRunDispatcher, FirebaseDispatcher, init_firebase_app


def _ok(message_id: str = "projects/p/messages/1"):
    return SimpleNamespace(success=True, message_id=message_id, exception=None)


def _err(exc: Exception):
    return SimpleNamespace(success=False, message_id=None, exception=exc)


def test_multicast_maps_per_token_results(monkeypatch):
    seen = {}
    app = object()

    def fake_send(message, dry_run=False, app=None):
        seen["message"] = message
        seen["app"] = app
        return SimpleNamespace(
            responses=[_ok(), _err(FirebaseError("NOT_FOUND", "Requested entity was not found."))]
        )

    monkeypatch.setattr(messaging, "send_each_for_multicast", fake_send)
    dispatcher = FirebaseDispatcher(app)
    resp = dispatcher.send_multicast("Class Cancelled", "body", {"type": "CANCELLED"}, ["a", "b"])

    message = seen["message"]
    assert seen["app"] is app
    assert message.tokens == ["a", "b"]
    assert message.notification.title == "Class Cancelled"
    assert message.notification.body == "body"
    assert message.data == {"type": "CANCELLED"}
    assert resp.success_count == 1
    assert resp.failure_count == 1
    (failure,) = resp.failures
    assert failure.token == "b"
    assert failure.error_code == "NOT_FOUND"
    assert "not found" in failure.error_message


def test_plain_exceptions_use_class_name(monkeypatch):
    monkeypatch.setattr(
        messaging,
        "send_each_for_multicast",
        lambda message, dry_run=False, app=None: SimpleNamespace(
            responses=[_err(RuntimeError("boom"))]
        ),
    )
    resp = FirebaseDispatcher().send_multicast("t", "b", {}, ["a"])
    assert resp.failures[0].error_code == "RuntimeError"
    assert resp.failures[0].error_message == "boom"


def test_missing_results_count_as_failures(monkeypatch):
    monkeypatch.setattr(
        messaging,
        "send_each_for_multicast",
        lambda message, dry_run=False, app=None: SimpleNamespace(responses=[]),
    )
    resp = FirebaseDispatcher().send_multicast("t", "b", {}, ["a"])
    assert resp.failure_count == 1
    assert resp.failures[0].error_code == "MissingResult"


def test_transport_errors_propagate(monkeypatch):
    def boom(message, dry_run=False, app=None):
        raise FirebaseError("UNAVAILABLE", "service unavailable")

    monkeypatch.setattr(messaging, "send_each_for_multicast", boom)
    with pytest.raises(FirebaseError):
        FirebaseDispatcher().send_multicast("t", "b", {}, ["a"])


def test_batch_ceiling_enforced():
    with pytest.raises(ValueError):
        FirebaseDispatcher().send_multicast("t", "b", {}, ["x"] * 501)


def test_init_firebase_app_uses_service_account(monkeypatch):
    calls = {}

    def no_app(name):
        raise ValueError(name)

    def fake_initialize(cred, options, name):
        calls.update(cred=cred, options=options, name=name)
        return "app"

    monkeypatch.setattr(core.firebase_admin, "get_app", no_app)
    monkeypatch.setattr(core.firebase_admin, "initialize_app", fake_initialize)
    monkeypatch.setattr(core.credentials, "Certificate", lambda path: ("cert", path))

    app = init_firebase_app("/secrets/sa.json", project_id="campus", timeout=7)
    assert app == "app"
    assert calls["cred"] == ("cert", "/secrets/sa.json")
    assert calls["options"] == {"httpTimeout": 7, "projectId": "campus"}
    assert calls["name"] == core.FIREBASE_APP_NAME


def test_init_firebase_app_falls_back_to_default_credentials(monkeypatch):
    calls = {}

    def no_app(name):
        raise ValueError(name)

    monkeypatch.setattr(core.firebase_admin, "get_app", no_app)
    monkeypatch.setattr(
        core.firebase_admin,
        "initialize_app",
        lambda cred, options, name: calls.update(cred=cred, options=options) or "app",
    )
    monkeypatch.setattr(core.credentials, "ApplicationDefault", lambda: "adc")

    init_firebase_app()
    assert calls == {"cred": "adc", "options": {"httpTimeout": 25}}


def test_init_firebase_app_reuses_existing(monkeypatch):
    monkeypatch.setattr(core.firebase_admin, "get_app", lambda name: f"existing:{name}")

    def must_not_run(*args, **kwargs):
        raise AssertionError("initialize_app called for an existing app")

    monkeypatch.setattr(core.firebase_admin, "initialize_app", must_not_run)
    assert init_firebase_app(name="x") == "existing:x"


def test_dry_run_records_and_succeeds():
    dispatcher = DryRunDispatcher()
    resp = dispatcher.send_multicast("t", "b", {"k": "v"}, ["a", "b"])
    assert resp.success_count == 2
    assert dispatcher.sent == [{"title": "t", "body": "b", "data": {"k": "v"}, "tokens": ["a", "b"]}]
