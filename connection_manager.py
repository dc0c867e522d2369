"""
IL-2 SSD Client
Copyright (C) 2024 thiccaxe

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU Affero General Public License as published
by the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.

This program is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
GNU Affero General Public License for more details.

You should have received a copy of the GNU Affero General Public License
along with this program.  If not, see <https://www.gnu.org/licenses/>.
"""

import asyncio
import enum
import itertools
import logging
from typing import Awaitable, Callable, Optional, Union

import websockets
import websockets.exceptions

from app_state import ConnectionHandle
from messages import ConsoleCommand, Connected, Disconnected, DecodeError, decode, encode


class NotConnectedError(Exception): pass


class ConnectionStateError(Exception): pass


class ConnectionState(enum.Enum):
    IDLE = "Idle"
    CONNECTING = "Connecting"
    OPEN = "Open"
    CLOSED = "Closed"


class ConnectionManager:
    """
    Owns the one websocket to the daemon.

    Every inbound frame is decoded and handed to ``on_event`` in the order it
    arrived. Opening and losing the connection are reported through the same
    callback as ``Connected`` and ``Disconnected``.
    """

    def __init__(self,
                 on_event: Callable[[object], Awaitable[None]],
                 on_decode_error: Optional[Callable[[Union[str, bytes], DecodeError], None]] = None,
                 open_timeout: float = 10):
        self._on_event = on_event
        self._on_decode_error = on_decode_error
        self._open_timeout = open_timeout
        self._state = ConnectionState.IDLE
        self._websocket = None
        self._handle: Optional[ConnectionHandle] = None
        self._connection_ids = itertools.count(1)
        self._connecting: Optional[asyncio.Future] = None
        self._closing = False

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def handle(self) -> Optional[ConnectionHandle]:
        return self._handle

    async def connect(self, uri: str) -> Optional[ConnectionHandle]:
        if self._state in (ConnectionState.CONNECTING, ConnectionState.OPEN):
            raise ConnectionStateError(f"Cannot connect while {self._state.value}")

        self._state = ConnectionState.CONNECTING
        self._closing = False
        logging.info(f"Connecting to {uri}")
        self._connecting = asyncio.ensure_future(websockets.connect(uri, open_timeout=self._open_timeout))
        websocket = None
        try:
            websocket = await self._connecting
        except asyncio.CancelledError:
            if not self._closing:
                self._state = ConnectionState.CLOSED
                raise
        except (OSError, asyncio.TimeoutError, websockets.exceptions.WebSocketException) as e:
            logging.warning(f"Could not connect to {uri}: {e}")
        finally:
            self._connecting = None

        # closed while the handshake was still in flight
        if websocket is not None and self._closing:
            await websocket.close()
            websocket = None
        if websocket is None:
            if self._closing:
                logging.info(f"Connection to {uri} abandoned")
            self._state = ConnectionState.CLOSED
            await self._on_event(Disconnected())
            return None

        self._websocket = websocket
        self._state = ConnectionState.OPEN
        self._handle = ConnectionHandle(next(self._connection_ids), uri)
        logging.info(f"Connected to {uri}")
        await self._on_event(Connected(self._handle))
        return self._handle

    async def receive_forever(self):
        if self._state != ConnectionState.OPEN:
            return

        websocket = self._websocket
        try:
            async for frame in websocket:
                try:
                    event = decode(frame)
                except DecodeError as e:
                    logging.warning(f"Daemon sent a frame that could not be decoded; details: {e}")
                    if self._on_decode_error is not None:
                        self._on_decode_error(frame, e)
                    continue
                await self._on_event(event)
        except websockets.exceptions.ConnectionClosed as e:
            logging.debug(f"Websocket connection closed: {e}")
        finally:
            await self.close()

    async def send(self, command: ConsoleCommand, handle: Optional[ConnectionHandle] = None):
        if self._state != ConnectionState.OPEN or self._websocket is None:
            raise NotConnectedError(f"Cannot send while {self._state.value}")
        if handle is not None and handle != self._handle:
            raise NotConnectedError(f"Connection {handle.connection_id} is no longer open")

        frame = encode(command)
        logging.debug(f"Sending {frame}")
        try:
            await self._websocket.send(frame)
        except websockets.exceptions.ConnectionClosed as e:
            raise NotConnectedError("Connection closed while sending") from e

    async def close(self):
        if self._state == ConnectionState.CONNECTING:
            self._closing = True
            if self._connecting is not None:
                self._connecting.cancel()
            return

        websocket, self._websocket = self._websocket, None
        if websocket is None:
            return
        logging.debug(f"Closing websocket")
        try:
            await websocket.close()
        except (OSError, websockets.exceptions.WebSocketException) as e:
            logging.debug(f"Error while closing websocket: {e}")
        await self._connection_lost()

    async def _connection_lost(self):
        if self._state != ConnectionState.OPEN:
            return
        self._state = ConnectionState.CLOSED
        self._websocket = None
        self._handle = None
        logging.info("Disconnected from daemon")
        await self._on_event(Disconnected())

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
