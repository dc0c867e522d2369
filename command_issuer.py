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

"""
Operator actions expressed as daemon console commands.

The ban protocol has no delete-by-id, only a full re-list, so every action that
changes bans clears the local list first, then sends the change, then asks for
the list again.
"""

import logging
from typing import Union

from app_state import Pilot, IPBan, NameBan, MissionStatus
from connection_manager import NotConnectedError
from messages import ConsoleCommand, ClearBans
from session_controller import SessionController


class CommandRejectedError(Exception): pass


class CommandIssuer:

    def __init__(self, session: SessionController):
        self._session = session

    def _require_connected(self):
        if not self._session.state.connected:
            raise NotConnectedError("Not connected to the daemon")

    async def _send(self, *commands: str):
        for command in commands:
            await self._session.send(ConsoleCommand(command))

    async def console(self, line: str):
        self._require_connected()
        await self._send(line)

    async def kick(self, pilot: Pilot):
        self._require_connected()
        logging.info(f"Kicking {pilot.name}")
        await self._send(f"kick {pilot.name}")

    async def ban(self, pilot: Pilot):
        self._require_connected()
        logging.info(f"Banning {pilot.name}")
        self._session.dispatch(ClearBans())
        await self._send(f"ban ADD NAME {pilot.name}", f"kick {pilot.name}", "ban")

    async def ip_ban(self, pilot: Pilot):
        self._require_connected()
        logging.info(f"Banning {pilot.name} by IP {pilot.ip}")
        self._session.dispatch(ClearBans())
        await self._send(f"ban ADD IP {pilot.ip}", f"kick {pilot.name}", "ban")

    async def lift_ban(self, ban: Union[IPBan, NameBan]):
        self._require_connected()
        logging.info(f"Lifting {ban.kind} ban on {ban.target}")
        self._session.dispatch(ClearBans())
        await self._send(f"ban REM {ban.kind} {ban.target}", "ban")

    async def toggle_difficulty(self, setting: str):
        self._require_connected()
        state = self._session.state
        if setting not in state.difficulty:
            raise CommandRejectedError(f"Unknown difficulty setting {setting}")
        if state.mission.status == MissionStatus.PLAYING:
            raise CommandRejectedError("Difficulty cannot be changed while a mission is playing")

        inverted = "0" if state.difficulty[setting] else "1"
        await self._send(f"difficulty {setting} {inverted}", "difficulty")

    async def refresh_server(self):
        self._require_connected()
        await self._send("server")

    async def refresh_mission(self):
        self._require_connected()
        await self._send("mission")

    async def refresh_pilots(self):
        self._require_connected()
        await self._send("host", "user")

    async def refresh_bans(self):
        self._require_connected()
        self._session.dispatch(ClearBans())
        await self._send("ban")

    async def refresh_difficulty(self):
        self._require_connected()
        await self._send("difficulty")
