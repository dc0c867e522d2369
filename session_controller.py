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

import enum
import logging
from typing import Callable, Optional, Union

from app_state import ApplicationState
from config import Endpoint
from connection_manager import ConnectionManager, NotConnectedError
from messages import ConsoleCommand, Connected, ClearBans, DecodeError, Unrecognized
from reducer import reduce

BOOTSTRAP_COMMANDS = ("server", "mission", "host", "user", "ban", "difficulty")


class View(enum.Enum):
    PILOTS = "pilots"
    MISSION = "mission"
    BANS = "bans"
    DIFFICULTY = "difficulty"
    CONSOLE = "console"


VIEW_REFRESH_COMMANDS = {
    View.PILOTS: ("host", "user"),
    View.MISSION: ("mission",),
    View.BANS: ("ban",),
    View.DIFFICULTY: ("difficulty",),
    View.CONSOLE: (),
}


class SessionController:
    """
    Holds the application state and is the only place it changes.

    Inbound events, connection changes and local intents all go through
    ``dispatch``; subscribers are told about every new state.
    """

    def __init__(self, endpoint: Endpoint, connection: Optional[ConnectionManager] = None):
        self._endpoint = endpoint
        self._state = ApplicationState()
        self._listeners: list[Callable[[ApplicationState], None]] = []
        self._activated_views: set[View] = set()
        self._connection = connection if connection is not None else ConnectionManager(
            self.handle_event, self._decode_failed)

    @property
    def state(self) -> ApplicationState:
        return self._state

    @property
    def endpoint(self) -> Endpoint:
        return self._endpoint

    def subscribe(self, listener: Callable[[ApplicationState], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def dispatch(self, event) -> ApplicationState:
        if isinstance(event, Unrecognized):
            logging.debug(f"Unknown message type: {event.tag} {event.payload}")

        self._state = reduce(self._state, event)
        for listener in list(self._listeners):
            listener(self._state)
        return self._state

    async def handle_event(self, event):
        self.dispatch(event)
        if isinstance(event, Connected):
            self._activated_views.clear()
            await self.bootstrap()

    def _decode_failed(self, frame: Union[str, bytes], error: DecodeError):
        logging.debug(f"Ignored frame: {frame!r}")

    async def bootstrap(self):
        logging.debug("Sending bootstrap commands")
        self.dispatch(ClearBans())
        try:
            for command in BOOTSTRAP_COMMANDS:
                await self.send(ConsoleCommand(command))
        except NotConnectedError as e:
            logging.warning(f"Connection lost during bootstrap: {e}")

    async def activate_view(self, view: View):
        """Re-issue the refresh queries of a view the first time it is shown on this connection."""
        if view in self._activated_views or not self._state.connected:
            return
        self._activated_views.add(view)

        if view == View.BANS:
            self.dispatch(ClearBans())
        for command in VIEW_REFRESH_COMMANDS[view]:
            await self.send(ConsoleCommand(command))

    async def send(self, command: ConsoleCommand):
        if self._state.connection_handle is None:
            raise NotConnectedError("Not connected to the daemon")
        await self._connection.send(command, self._state.connection_handle)

    async def run(self):
        """Connect and consume events until the connection ends. Call again to reconnect."""
        handle = await self._connection.connect(self._endpoint.uri)
        if handle is None:
            return
        await self._connection.receive_forever()

    async def close(self):
        await self._connection.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
