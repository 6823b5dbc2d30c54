"""WebSocket connection registry.

Instantiated once in the ``main.py`` lifespan and stored on ``app.state``;
routers receive it through ``dependencies.get_connection_registry``. Each
authenticated socket gets one ``ConnectionRecord`` keyed by a generated id.
The same identity may hold several records at once (several tabs/devices,
or a browser tab plus its service worker).
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from uuid import uuid4

from starlette.websockets import WebSocket

logger = logging.getLogger(__name__)


@dataclass
class ConnectionRecord:
    """One authenticated live socket."""

    identity: str
    token: str
    is_service_worker: bool
    socket: WebSocket
    id: str = field(default_factory=lambda: str(uuid4()))


class ConnectionRegistry:
    """Tracks authenticated WebSocket connections and routes pushes to them."""

    def __init__(self) -> None:
        self._records: dict[str, ConnectionRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    def register(
        self,
        identity: str,
        token: str,
        socket: WebSocket,
        *,
        is_service_worker: bool = False,
    ) -> ConnectionRecord:
        """Append a record for *socket*. Existing records for *identity* are kept."""
        record = ConnectionRecord(
            identity=identity,
            token=token,
            is_service_worker=is_service_worker,
            socket=socket,
        )
        self._records[record.id] = record
        logger.info(
            "Registered connection %s for %s (service_worker=%s, live=%d)",
            record.id,
            identity,
            is_service_worker,
            len(self._records),
        )
        return record

    def unregister(self, socket: WebSocket) -> ConnectionRecord | None:
        """Remove the record holding *socket* and return it.

        Returns ``None`` when the socket never authenticated.
        """
        for record_id, record in self._records.items():
            if record.socket is socket:
                del self._records[record_id]
                logger.info(
                    "Unregistered connection %s for %s (live=%d)",
                    record_id,
                    record.identity,
                    len(self._records),
                )
                return record
        logger.info("Closed socket had no registered connection")
        return None

    def lookup(self, predicate: Callable[[ConnectionRecord], bool]) -> list[ConnectionRecord]:
        """Return every record satisfying *predicate*, in registration order."""
        return [record for record in self._records.values() if predicate(record)]

    def find_by_socket(self, socket: WebSocket) -> ConnectionRecord | None:
        for record in self._records.values():
            if record.socket is socket:
                return record
        return None

    def is_online(self, identity: str) -> bool:
        return any(record.identity == identity for record in self._records.values())

    def identities(self) -> set[str]:
        return {record.identity for record in self._records.values()}

    async def send(self, record: ConnectionRecord, message: dict) -> bool:
        """Send *message* as JSON to *record*'s socket.

        Best effort: a failed send (socket already closing) is logged and
        reported as ``False``; the record stays until its close callback
        unregisters it.
        """
        try:
            await record.socket.send_json(message)
        except Exception as exc:
            logger.debug("Dropped %s push to %s: %s", message.get("type"), record.identity, exc)
            return False
        return True

    async def send_to_identities(self, identities: set[str], *messages: dict) -> int:
        """Send *messages*, in order, to every live record of every identity.

        Returns the number of records that were targeted.
        """
        if not identities:
            return 0
        records = self.lookup(lambda record: record.identity in identities)
        for record in records:
            for message in messages:
                await self.send(record, message)
        return len(records)
