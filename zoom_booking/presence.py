"""
Live connection registry for forced-logout notices.

Each live connection subscribes to two topics: one for the session it
belongs to (``session:<sid>``) and one for that session's principal
(``user:<id>``). A new login publishes a ForcedLogout event on the
principal's topic, skipping the connections of the new session.

Delivery is best effort and nothing is replayed: a client that was offline
finds out when its next request is refused because its session was revoked.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable

from .schemas import ForcedLogout

logger = logging.getLogger("presence")

Sender = Callable[[dict[str, Any]], Awaitable[None]]


def user_topic(principal_id: int) -> str:
    return f"user:{principal_id}"


def session_topic(session_id: str) -> str:
    return f"session:{session_id}"


class PresenceChannel:
    def __init__(self):
        self._session_owner: dict[str, int] = {}
        self._principal_sessions: dict[int, set[str]] = {}
        self._topics: dict[str, set[str]] = {}
        self._senders: dict[str, Sender] = {}
        self._connection_topics: dict[str, set[str]] = {}

    # --- Bindings ---

    async def bind_session(self, principal_id: int, session_id: str, reason: str = "new_login") -> int:
        """
        Makes `session_id` the only session of `principal_id`.

        Connections of the principal's earlier sessions receive a ForcedLogout
        and are dropped from the channel. Returns how many were notified.
        """
        previous = self._principal_sessions.get(principal_id, set()) - {session_id}
        for old_session in previous:
            self._session_owner.pop(old_session, None)

        self._session_owner[session_id] = principal_id
        self._principal_sessions[principal_id] = {session_id}

        if not previous:
            return 0

        event = ForcedLogout(
            target_principal_id=principal_id,
            excluded_session_id=session_id,
            reason=reason,
        )
        excluded = self.connections(session_topic(session_id))
        delivered = await self.publish(user_topic(principal_id), event.model_dump(), exclude=excluded)

        for old_session in previous:
            for connection_id in list(self._topics.get(session_topic(old_session), set())):
                self.unsubscribe(connection_id)

        logger.info(
            f"Principal {principal_id} bound to a new session; "
            f"forced logout sent to {delivered} connections of {len(previous)} earlier sessions."
        )
        return delivered

    def ensure_bound(self, principal_id: int, session_id: str) -> None:
        """
        Records a binding without notifying anyone, for sessions that are
        live in the database but unknown to this process (e.g. after a restart).
        """
        if self._session_owner.get(session_id) == principal_id:
            return
        self._session_owner[session_id] = principal_id
        self._principal_sessions.setdefault(principal_id, set()).add(session_id)

    def unbind_session(self, session_id: str) -> None:
        principal_id = self._session_owner.pop(session_id, None)
        if principal_id is not None:
            sessions = self._principal_sessions.get(principal_id, set())
            sessions.discard(session_id)
            if not sessions:
                self._principal_sessions.pop(principal_id, None)
        for connection_id in list(self._topics.get(session_topic(session_id), set())):
            self.unsubscribe(connection_id)

    def principal_of(self, session_id: str) -> int | None:
        return self._session_owner.get(session_id)

    # --- Subscriptions ---

    def subscribe(self, connection_id: str, session_id: str, send: Sender) -> None:
        principal_id = self._session_owner.get(session_id)
        if principal_id is None:
            raise KeyError(f"Session {session_id} is not bound")

        topics = {session_topic(session_id), user_topic(principal_id)}
        for topic in topics:
            self._topics.setdefault(topic, set()).add(connection_id)
        self._connection_topics[connection_id] = topics
        self._senders[connection_id] = send

    def unsubscribe(self, connection_id: str) -> None:
        for topic in self._connection_topics.pop(connection_id, set()):
            members = self._topics.get(topic)
            if members is None:
                continue
            members.discard(connection_id)
            if not members:
                del self._topics[topic]
        self._senders.pop(connection_id, None)

    def connections(self, topic: str) -> set[str]:
        return set(self._topics.get(topic, set()))

    # --- Delivery ---

    async def publish(self, topic: str, message: dict[str, Any], exclude: frozenset[str] | set[str] = frozenset()) -> int:
        targets = [c for c in self._topics.get(topic, set()) if c not in exclude]
        if not targets:
            return 0

        results = await asyncio.gather(
            *(self._senders[c](message) for c in targets),
            return_exceptions=True,
        )
        delivered = 0
        for connection_id, result in zip(targets, results):
            if isinstance(result, Exception):
                logger.warning(f"Dropping connection {connection_id} after failed delivery: {result}")
                self.unsubscribe(connection_id)
            else:
                delivered += 1
        return delivered


presence = PresenceChannel()


def get_presence() -> PresenceChannel:
    return presence
