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
import logging
import sys
from typing import Optional

from rich.console import Console
from rich.table import Table

import logger
from app_state import ApplicationState, pilots_for_display, difficulty_for_display, describe_mission, find_pilot
from command_issuer import CommandIssuer, CommandRejectedError
from connection_manager import NotConnectedError
from session_controller import SessionController, View

HELP = """\
/kick <name>          kick a pilot
/ban <name>           ban a pilot by name and kick
/ipban <name>         ban a pilot by IP and kick
/unban <name or ip>   lift a ban
/difficulty <setting> toggle a difficulty setting
/pilots /bans /mission /difficulty   show what is known
/quit                 leave
anything else is sent to the server console"""


class OperatorConsole:
    """Line based front end: plain lines go to the daemon console, slash commands are operator actions."""

    def __init__(self, session: SessionController, issuer: CommandIssuer, console: Optional[Console] = None):
        self._session = session
        self._issuer = issuer
        self._console = console if console is not None else logger.console
        self._last_console_log = session.state.console_log
        self._commands = {
            "/kick": self._kick,
            "/ban": self._ban,
            "/ipban": self._ip_ban,
            "/unban": self._unban,
            "/difficulty": self._difficulty,
            "/pilots": self._show_pilots,
            "/bans": self._show_bans,
            "/mission": self._show_mission,
            "/help": self._help,
        }

    def on_state(self, state: ApplicationState):
        # the log tuple is only replaced when a console message arrives
        if state.console_log is not self._last_console_log and state.console_log:
            self._console.print(state.console_log[-1], markup=False, highlight=False)
        self._last_console_log = state.console_log

    async def handle_line(self, line: str) -> bool:
        """Returns False once the operator asked to leave."""
        line = line.strip()
        if not line:
            return True
        if line == "/quit":
            return False

        try:
            if line.startswith("/"):
                command, _, argument = line.partition(" ")
                handler = self._commands.get(command)
                if handler is None:
                    logging.warning(f"Unknown command {command}, try /help")
                    return True
                await handler(argument.strip())
            else:
                await self._issuer.console(line)
        except NotConnectedError:
            logging.warning("Not connected to the daemon")
        except CommandRejectedError as e:
            logging.warning(f"{e}")
        return True

    async def read_stdin(self):
        loop = asyncio.get_running_loop()
        reader = asyncio.StreamReader()
        await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), sys.stdin)
        while True:
            line = await reader.readline()
            if not line:
                return
            if not await self.handle_line(line.decode("utf-8", errors="replace")):
                return

    def _pilot(self, name: str):
        pilot = find_pilot(self._session.state, name)
        if pilot is None:
            logging.warning(f"No pilot named {name}")
        return pilot

    async def _kick(self, name: str):
        pilot = self._pilot(name)
        if pilot is not None:
            await self._issuer.kick(pilot)

    async def _ban(self, name: str):
        pilot = self._pilot(name)
        if pilot is not None:
            await self._issuer.ban(pilot)

    async def _ip_ban(self, name: str):
        pilot = self._pilot(name)
        if pilot is not None:
            await self._issuer.ip_ban(pilot)

    async def _unban(self, target: str):
        for ban in self._session.state.bans:
            if ban.target == target:
                await self._issuer.lift_ban(ban)
                return
        logging.warning(f"No ban on {target}")

    async def _difficulty(self, setting: str):
        if not setting:
            await self._session.activate_view(View.DIFFICULTY)
            table = Table("Setting", "Enabled")
            for name, enabled in difficulty_for_display(self._session.state):
                table.add_row(name, "yes" if enabled else "no")
            self._console.print(table)
            return
        await self._issuer.toggle_difficulty(setting)

    async def _show_pilots(self, _):
        await self._session.activate_view(View.PILOTS)
        table = Table("#", "Name", "Ping", "Score", "Army", "Aircraft")
        for pilot in pilots_for_display(self._session.state):
            table.add_row(
                "" if pilot.number is None else str(pilot.number),
                pilot.name or "",
                str(pilot.ping or 0),
                str(pilot.score or 0),
                pilot.army or "",
                pilot.aircraft or "",
            )
        self._console.print(table)

    async def _show_bans(self, _):
        await self._session.activate_view(View.BANS)
        table = Table("Type", "Name / IP")
        for ban in self._session.state.bans:
            table.add_row(ban.kind, ban.target)
        self._console.print(table)

    async def _show_mission(self, _):
        await self._session.activate_view(View.MISSION)
        state = self._session.state
        status = "Connected" if state.connected else "Disconnected"
        self._console.print(f"{status} - {describe_mission(state.mission)}", markup=False)

    async def _help(self, _):
        self._console.print(HELP, markup=False, highlight=False)
