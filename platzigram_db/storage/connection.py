import asyncio
import logging
from enum import Enum
from typing import Optional

from platzigram_db.settings import Settings, settings as default_settings
from platzigram_db.exceptions import NotConnectedError
from platzigram_db.storage.dynamodb import StorageConnection
from platzigram_db.storage.schema import SchemaInitializer

log = logging.getLogger(__name__)

class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FAILED = "failed"

class ConnectionManager:
    """
        Owns the single connection shared by the repositories.

        ``connect()`` only starts opening the connection and marks the manager
        connected right away. Operations issued before the connection (and
        schema setup, when enabled) is ready wait on the same pending value.
    """
    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or default_settings
        self.connected = False
        self._connection: Optional[asyncio.Future] = None
        self._ready: Optional[asyncio.Future] = None

    @property
    def state(self) -> ConnectionState:
        if not self.connected:
            return ConnectionState.DISCONNECTED
        if not self._ready.done():
            return ConnectionState.CONNECTING
        if self._ready.cancelled() or self._ready.exception() is not None:
            return ConnectionState.FAILED
        return ConnectionState.CONNECTED

    def connect(self) -> "asyncio.Future[StorageConnection]":
        """Starts connecting and returns the pending connection. Must be called from a running loop."""
        if self.connected:
            return self._ready

        self._connection = asyncio.ensure_future(StorageConnection.open(self.settings))
        self.connected = True
        log.info("Connecting to %s (database %s)", self.settings.resolved_endpoint_url, self.settings.database_name)

        # skipping setup is faster in production
        if not self.settings.setup_schema:
            self._ready = self._connection
        else:
            self._ready = asyncio.ensure_future(self._setup())
        return self._ready

    async def _setup(self) -> StorageConnection:
        # cancelling setup must leave the connection itself open for disconnect()
        conn = await asyncio.shield(self._connection)
        return await SchemaInitializer(self.settings.database_name).run(conn)

    async def connection(self) -> StorageConnection:
        """Returns the shared connection once ready; raises NotConnectedError when disconnected."""
        if not self.connected:
            raise NotConnectedError()
        return await self._ready

    async def disconnect(self) -> None:
        if not self.connected:
            raise NotConnectedError()
        self.connected = False
        connection, ready = self._connection, self._ready
        self._connection, self._ready = None, None

        if ready is not connection:
            # schema setup must not keep running on a closed connection
            if not ready.done():
                ready.cancel()
            outcome = (await asyncio.gather(ready, return_exceptions=True))[0]
            if isinstance(outcome, Exception):
                log.warning("Schema setup did not complete: %r", outcome)

        if connection.done() and connection.exception() is not None:
            log.warning("Connection never opened: %s", connection.exception())
            return
        conn = await connection
        await conn.close()
        log.info("Disconnected from %s", self.settings.resolved_endpoint_url)

    async def __aenter__(self) -> "ConnectionManager":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if self.connected:
            await self.disconnect()
