"""Client state manager: runs API calls and feeds their results through the pure transitions."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Dict, List, Optional

from . import state as transitions
from .client import APIError, UsersAPIClient
from .models import Draft
from .state import ClientState, Message

logger = logging.getLogger("usercrud.manager")

Listener = Callable[[ClientState], None]


class ClientStateManager:
    """Own the UI state for one user interface instance and notify subscribers on change."""

    def __init__(
        self,
        client: UsersAPIClient,
        *,
        message_timeout: Optional[float] = 3.0,
    ) -> None:
        self._client = client
        self._message_timeout = message_timeout
        self._state = ClientState()
        self._listeners: List[Listener] = []
        self._timers: Dict[int, asyncio.TimerHandle] = {}
        self._mounted = False

    @property
    def state(self) -> ClientState:
        return self._state

    @property
    def mounted(self) -> bool:
        return self._mounted

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` and return a callable that removes it again."""

        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_state(self, new_state: ClientState) -> None:
        previous = self._state
        if new_state is previous:
            return
        self._state = new_state

        known = {message.token for message in previous.messages()}
        for message in new_state.messages():
            if message.token not in known:
                self._schedule_expiry(message)

        for listener in list(self._listeners):
            listener(new_state)

    def _schedule_expiry(self, message: Message) -> None:
        if not message.transient or self._message_timeout is None:
            return
        loop = asyncio.get_running_loop()
        self._timers[message.token] = loop.call_later(
            self._message_timeout, self.expire, message.token
        )

    def expire(self, token: int) -> None:
        """Clear the message identified by ``token`` if it is still displayed."""

        self._timers.pop(token, None)
        self._set_state(transitions.expire_message(self._state, token))

    def close(self) -> None:
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()
        self._listeners.clear()

    # ------------------------------------------------------------------
    # Remote intents
    # ------------------------------------------------------------------
    async def mount(self) -> None:
        """Load the user list the first time the interface is shown."""

        self._mounted = True
        await self.reload()

    async def reload(self) -> None:
        started, sequence = transitions.begin_request(self._state, transitions.LOAD)
        self._set_state(started)
        try:
            records = await self._client.list_users()
        except APIError as exc:
            logger.warning("Fetching users failed: %s", exc.message)
            self._set_state(transitions.load_failed(self._state, sequence, exc.message))
            return
        self._set_state(transitions.load_succeeded(self._state, sequence, records))

    async def submit(self) -> None:
        """Create a user from the draft, or update the record being edited."""

        editing_id = self._state.editing_id
        payload = self._state.draft.to_payload()

        if editing_id is None:
            started, sequence = transitions.begin_request(self._state, transitions.CREATE)
            self._set_state(started)
            try:
                record = await self._client.create_user(payload)
            except APIError as exc:
                logger.info("Creating user failed: %s", exc.message)
                self._set_state(transitions.create_failed(self._state, sequence, exc.message))
                return
            self._set_state(transitions.create_succeeded(self._state, sequence, record))
            return

        key = transitions.request_key(transitions.UPDATE, editing_id)
        started, sequence = transitions.begin_request(self._state, key)
        self._set_state(started)
        try:
            record = await self._client.update_user(editing_id, payload)
        except APIError as exc:
            logger.info("Updating user %s failed: %s", editing_id, exc.message)
            self._set_state(
                transitions.update_failed(self._state, sequence, editing_id, exc.message)
            )
            return
        self._set_state(transitions.update_succeeded(self._state, sequence, record))

    async def delete(self, user_id: str, *, confirmed: bool) -> bool:
        """Delete ``user_id`` once the user has confirmed; returns whether a request was sent."""

        if not confirmed:
            return False

        key = transitions.request_key(transitions.DELETE, user_id)
        started, sequence = transitions.begin_request(self._state, key)
        self._set_state(started)
        try:
            await self._client.delete_user(user_id)
        except APIError as exc:
            logger.info("Deleting user %s failed: %s", user_id, exc.message)
            self._set_state(transitions.delete_failed(self._state, sequence, user_id, exc.message))
            return True
        self._set_state(transitions.delete_succeeded(self._state, sequence, user_id))
        return True

    # ------------------------------------------------------------------
    # Local intents
    # ------------------------------------------------------------------
    def edit(self, user_id: str) -> bool:
        record = transitions.find_record(self._state, user_id)
        if record is None:
            return False
        self._set_state(transitions.edit_record(self._state, record))
        return True

    def cancel(self) -> None:
        self._set_state(transitions.cancel_edit(self._state))

    def change(self, field: str, value: str) -> None:
        self._set_state(transitions.change_field(self._state, field, value))

    def set_draft(self, draft: Draft) -> None:
        self._set_state(transitions.replace_draft(self._state, draft))


__all__ = ["ClientStateManager"]
