"""Immutable client-side state for the user management UI.

Every function in this module is a pure transition: it receives the current
:class:`ClientState` plus an event payload and returns a new state. Effects
(HTTP calls, timers, rendering) live in :mod:`usercrud.manager`.

Requests are tracked per key (``"load"``, ``"create"``, ``"update:<id>"``,
``"delete:<id>"``). Starting a request allocates a new sequence number for its
key; a response is applied only while its sequence number is still the latest
one for that key, so a slow response cannot overwrite newer state.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, Optional, Tuple

from .models import Draft, User

SUCCESS = "success"
ERROR = "error"

LOAD = "load"
CREATE = "create"
UPDATE = "update"
DELETE = "delete"

DEFAULT_ERRORS = {
    LOAD: "Failed to fetch users",
    CREATE: "Failed to create user",
    UPDATE: "Failed to update user",
    DELETE: "Failed to delete user",
}

SUCCESS_MESSAGES = {
    CREATE: "User created successfully!",
    UPDATE: "User updated successfully!",
    DELETE: "User deleted successfully!",
}


@dataclass(frozen=True)
class Message:
    """A banner shown to the user. ``token`` identifies this exact message."""

    kind: str
    text: str
    token: int
    transient: bool = True


@dataclass(frozen=True)
class ClientState:
    records: Tuple[User, ...] = ()
    draft: Draft = field(default_factory=Draft)
    editing_id: Optional[str] = None
    loading: bool = False
    error: Optional[Message] = None
    success: Optional[Message] = None
    last_token: int = 0
    last_sequence: int = 0
    pending: Dict[str, int] = field(default_factory=dict)

    @property
    def editing(self) -> Optional[User]:
        if self.editing_id is None:
            return None
        return find_record(self, self.editing_id)

    def messages(self) -> Tuple[Message, ...]:
        return tuple(message for message in (self.success, self.error) if message is not None)

    def is_pending(self, key: str) -> bool:
        return key in self.pending


def request_key(action: str, target: Optional[str] = None) -> str:
    return action if target is None else f"{action}:{target}"


def find_record(state: ClientState, user_id: str) -> Optional[User]:
    for record in state.records:
        if record.id == user_id:
            return record
    return None


# ----------------------------------------------------------------------
# Request bookkeeping
# ----------------------------------------------------------------------
def begin_request(state: ClientState, key: str) -> Tuple[ClientState, int]:
    """Register a new request for ``key`` and return its sequence number."""

    sequence = state.last_sequence + 1
    pending = dict(state.pending)
    pending[key] = sequence
    updated = replace(state, last_sequence=sequence, pending=pending)
    if key == LOAD:
        updated = replace(updated, loading=True)
    return updated, sequence


def is_current(state: ClientState, key: str, sequence: int) -> bool:
    return state.pending.get(key) == sequence


def _settle(state: ClientState, key: str) -> ClientState:
    pending = dict(state.pending)
    pending.pop(key, None)
    return replace(state, pending=pending)


def _with_message(state: ClientState, kind: str, text: str, *, transient: bool = True) -> ClientState:
    token = state.last_token + 1
    message = Message(kind=kind, text=text, token=token, transient=transient)
    if kind == SUCCESS:
        return replace(state, success=message, error=None, last_token=token)
    return replace(state, error=message, last_token=token)


# ----------------------------------------------------------------------
# Response transitions
# ----------------------------------------------------------------------
def load_succeeded(state: ClientState, sequence: int, records: Iterable[User]) -> ClientState:
    if not is_current(state, LOAD, sequence):
        return state
    settled = _settle(state, LOAD)
    return replace(settled, records=tuple(records), loading=False, error=None)


def load_failed(state: ClientState, sequence: int, message: Optional[str] = None) -> ClientState:
    if not is_current(state, LOAD, sequence):
        return state
    settled = replace(_settle(state, LOAD), loading=False)
    return _with_message(settled, ERROR, message or DEFAULT_ERRORS[LOAD], transient=False)


def create_succeeded(state: ClientState, sequence: int, record: User) -> ClientState:
    if not is_current(state, CREATE, sequence):
        return state
    settled = _settle(state, CREATE)
    records = (record,) + tuple(item for item in settled.records if item.id != record.id)
    settled = replace(settled, records=records)
    if settled.editing_id is None:
        settled = replace(settled, draft=Draft())
    return _with_message(settled, SUCCESS, SUCCESS_MESSAGES[CREATE])


def create_failed(state: ClientState, sequence: int, message: Optional[str] = None) -> ClientState:
    if not is_current(state, CREATE, sequence):
        return state
    return _with_message(_settle(state, CREATE), ERROR, message or DEFAULT_ERRORS[CREATE])


def update_succeeded(state: ClientState, sequence: int, record: User) -> ClientState:
    key = request_key(UPDATE, record.id)
    if not is_current(state, key, sequence):
        return state
    settled = _settle(state, key)
    records = tuple(record if item.id == record.id else item for item in settled.records)
    settled = replace(settled, records=records)
    if settled.editing_id == record.id:
        settled = replace(settled, draft=Draft(), editing_id=None)
    return _with_message(settled, SUCCESS, SUCCESS_MESSAGES[UPDATE])


def update_failed(
    state: ClientState,
    sequence: int,
    user_id: str,
    message: Optional[str] = None,
) -> ClientState:
    key = request_key(UPDATE, user_id)
    if not is_current(state, key, sequence):
        return state
    return _with_message(_settle(state, key), ERROR, message or DEFAULT_ERRORS[UPDATE])


def delete_succeeded(state: ClientState, sequence: int, user_id: str) -> ClientState:
    key = request_key(DELETE, user_id)
    if not is_current(state, key, sequence):
        return state
    settled = _settle(state, key)
    records = tuple(item for item in settled.records if item.id != user_id)
    settled = replace(settled, records=records)
    if settled.editing_id == user_id:
        settled = replace(settled, draft=Draft(), editing_id=None)
    return _with_message(settled, SUCCESS, SUCCESS_MESSAGES[DELETE])


def delete_failed(
    state: ClientState,
    sequence: int,
    user_id: str,
    message: Optional[str] = None,
) -> ClientState:
    key = request_key(DELETE, user_id)
    if not is_current(state, key, sequence):
        return state
    return _with_message(_settle(state, key), ERROR, message or DEFAULT_ERRORS[DELETE])


# ----------------------------------------------------------------------
# Local intents
# ----------------------------------------------------------------------
def edit_record(state: ClientState, record: User) -> ClientState:
    return replace(state, editing_id=record.id, draft=Draft.from_user(record))


def cancel_edit(state: ClientState) -> ClientState:
    return replace(state, editing_id=None, draft=Draft())


def change_field(state: ClientState, name: str, value: str) -> ClientState:
    return replace(state, draft=state.draft.with_field(name, value))


def replace_draft(state: ClientState, draft: Draft) -> ClientState:
    return replace(state, draft=draft)


def expire_message(state: ClientState, token: int) -> ClientState:
    """Clear the message carrying ``token``; newer messages are left alone."""

    if state.success is not None and state.success.token == token:
        return replace(state, success=None)
    if state.error is not None and state.error.token == token:
        return replace(state, error=None)
    return state


__all__ = [
    "ClientState",
    "Message",
    "begin_request",
    "cancel_edit",
    "change_field",
    "create_failed",
    "create_succeeded",
    "delete_failed",
    "delete_succeeded",
    "edit_record",
    "expire_message",
    "find_record",
    "is_current",
    "load_failed",
    "load_succeeded",
    "replace_draft",
    "request_key",
    "update_failed",
    "update_succeeded",
]
