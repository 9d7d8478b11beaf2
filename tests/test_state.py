from __future__ import annotations

from datetime import datetime, timezone

from usercrud import state as transitions
from usercrud.models import Draft, User
from usercrud.state import ClientState


def _user(user_id: str, name: str = "Ann", **extra) -> User:
    stamp = datetime(2024, 1, 1, tzinfo=timezone.utc)
    return User(
        id=user_id,
        name=name,
        email=f"{user_id}@example.com",
        created_at=stamp,
        updated_at=stamp,
        **extra,
    )


def _loaded(*records: User) -> ClientState:
    state, sequence = transitions.begin_request(ClientState(), transitions.LOAD)
    return transitions.load_succeeded(state, sequence, records)


def test_load_sets_and_clears_loading() -> None:
    state, sequence = transitions.begin_request(ClientState(), transitions.LOAD)
    assert state.loading is True

    loaded = transitions.load_succeeded(state, sequence, [_user("a"), _user("b")])
    assert loaded.loading is False
    assert [record.id for record in loaded.records] == ["a", "b"]
    assert loaded.error is None
    assert loaded.pending == {}


def test_load_failure_sets_persistent_error() -> None:
    state, sequence = transitions.begin_request(ClientState(), transitions.LOAD)
    failed = transitions.load_failed(state, sequence)

    assert failed.loading is False
    assert failed.error is not None
    assert failed.error.text == "Failed to fetch users"
    assert failed.error.transient is False


def test_create_success_prepends_and_clears_draft() -> None:
    state = transitions.change_field(_loaded(_user("a")), "name", "Bo")
    state, sequence = transitions.begin_request(state, transitions.CREATE)

    created = transitions.create_succeeded(state, sequence, _user("b", name="Bo"))

    assert [record.id for record in created.records] == ["b", "a"]
    assert created.draft == Draft()
    assert created.success is not None
    assert created.success.text == "User created successfully!"


def test_create_failure_keeps_draft() -> None:
    state = transitions.change_field(ClientState(), "name", "Bo")
    state, sequence = transitions.begin_request(state, transitions.CREATE)

    failed = transitions.create_failed(state, sequence, "Email is required")

    assert failed.draft.name == "Bo"
    assert failed.error is not None
    assert failed.error.text == "Email is required"
    assert failed.error.transient is True


def test_edit_populates_draft_and_cancel_clears_it() -> None:
    record = _user("a", phone="555", age=30)
    state = transitions.edit_record(_loaded(record), record)

    assert state.editing_id == "a"
    assert state.editing == record
    assert state.draft == Draft(name="Ann", email="a@example.com", phone="555", age="30", address="")

    cancelled = transitions.cancel_edit(state)
    assert cancelled.editing_id is None
    assert cancelled.draft == Draft()


def test_update_success_replaces_record_and_leaves_edit_mode() -> None:
    original = _user("a")
    state = transitions.edit_record(_loaded(original, _user("b")), original)
    key = transitions.request_key(transitions.UPDATE, "a")
    state, sequence = transitions.begin_request(state, key)

    updated = transitions.update_succeeded(state, sequence, _user("a", name="Ann B"))

    assert [record.name for record in updated.records] == ["Ann B", "Ann"]
    assert updated.editing_id is None
    assert updated.draft == Draft()
    assert updated.success is not None


def test_update_failure_keeps_edit_mode() -> None:
    original = _user("a")
    state = transitions.edit_record(_loaded(original), original)
    state, sequence = transitions.begin_request(state, transitions.request_key(transitions.UPDATE, "a"))

    failed = transitions.update_failed(state, sequence, "a", "User not found")

    assert failed.editing_id == "a"
    assert failed.draft.name == "Ann"
    assert failed.error is not None
    assert failed.error.text == "User not found"


def test_delete_success_removes_record() -> None:
    state = _loaded(_user("a"), _user("b"))
    state, sequence = transitions.begin_request(state, transitions.request_key(transitions.DELETE, "a"))

    deleted = transitions.delete_succeeded(state, sequence, "a")

    assert [record.id for record in deleted.records] == ["b"]
    assert deleted.success is not None
    assert deleted.success.text == "User deleted successfully!"


def test_stale_response_is_discarded() -> None:
    state = _loaded()
    state, first = transitions.begin_request(state, transitions.LOAD)
    state, second = transitions.begin_request(state, transitions.LOAD)

    newest = transitions.load_succeeded(state, second, [_user("new")])
    stale = transitions.load_succeeded(newest, first, [_user("old")])

    assert stale is newest
    assert [record.id for record in stale.records] == ["new"]


def test_requests_for_different_records_do_not_supersede_each_other() -> None:
    state = _loaded(_user("a"), _user("b"))
    state, delete_a = transitions.begin_request(state, transitions.request_key(transitions.DELETE, "a"))
    state, delete_b = transitions.begin_request(state, transitions.request_key(transitions.DELETE, "b"))

    state = transitions.delete_succeeded(state, delete_b, "b")
    state = transitions.delete_succeeded(state, delete_a, "a")

    assert state.records == ()


def test_expire_ignores_stale_tokens() -> None:
    state = _loaded(_user("a"))
    state, first = transitions.begin_request(state, transitions.CREATE)
    state = transitions.create_failed(state, first, "first failure")
    first_token = state.error.token

    state, second = transitions.begin_request(state, transitions.CREATE)
    state = transitions.create_failed(state, second, "second failure")

    after_stale_timer = transitions.expire_message(state, first_token)
    assert after_stale_timer.error is not None
    assert after_stale_timer.error.text == "second failure"

    cleared = transitions.expire_message(after_stale_timer, state.error.token)
    assert cleared.error is None


def test_success_message_clears_previous_error() -> None:
    state = _loaded()
    state, failed_seq = transitions.begin_request(state, transitions.CREATE)
    state = transitions.create_failed(state, failed_seq, "boom")
    state, ok_seq = transitions.begin_request(state, transitions.CREATE)

    state = transitions.create_succeeded(state, ok_seq, _user("a"))

    assert state.error is None
    assert state.success is not None
