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

import dataclasses
import enum
import types
from typing import Any, Mapping, Optional

MAX_CONSOLE_MESSAGES = 100


class MissionStatus(enum.Enum):
    PLAYING = "Playing"
    LOADED = "Loaded"
    NOT_LOADED = "NotLoaded"


@dataclasses.dataclass(frozen=True)
class Mission:
    status: MissionStatus = MissionStatus.NOT_LOADED
    name: Optional[str] = None

    @staticmethod
    def not_loaded():
        return Mission(MissionStatus.NOT_LOADED, None)

    @staticmethod
    def loaded(name: str):
        return Mission(MissionStatus.LOADED, name)

    @staticmethod
    def playing(name: str):
        return Mission(MissionStatus.PLAYING, name)


@dataclasses.dataclass(frozen=True)
class Pilot:
    """
    One player connection. ``socket`` is known from the join onwards,
    ``number`` and the stats arrive later from host/user listings.
    """
    socket: Any
    ip: Optional[str] = None
    port: Optional[int] = None
    name: Optional[str] = None
    number: Optional[int] = None
    ping: Optional[int] = None
    score: Optional[int] = None
    army: Optional[str] = None
    aircraft: Optional[str] = None


@dataclasses.dataclass(frozen=True)
class IPBan:
    ip: str

    kind = "IP"

    @property
    def target(self) -> str:
        return self.ip


@dataclasses.dataclass(frozen=True)
class NameBan:
    name: str

    kind = "NAME"

    @property
    def target(self) -> str:
        return self.name


@dataclasses.dataclass(frozen=True)
class ConnectionHandle:
    """Opaque reference to the live connection, minted by the connection manager."""
    connection_id: int
    uri: str


@dataclasses.dataclass(frozen=True)
class ApplicationState:
    connected: bool = False
    connection_handle: Optional[ConnectionHandle] = None
    console_log: tuple = ()
    pilots: Mapping = dataclasses.field(default_factory=dict)  # socket -> Pilot
    bans: tuple = ()
    difficulty: Mapping = dataclasses.field(default_factory=dict)  # setting -> enabled
    mission: Mission = Mission()

    def __post_init__(self):
        # renderers get read-only views, the reducer always builds new dicts
        for name in ("pilots", "difficulty"):
            value = getattr(self, name)
            if not isinstance(value, types.MappingProxyType):
                object.__setattr__(self, name, types.MappingProxyType(dict(value)))


def pilots_for_display(state: ApplicationState) -> list[Pilot]:
    # numbered pilots first, in number order, then the rest by socket
    return sorted(
        state.pilots.values(),
        key=lambda pilot: (pilot.number is None, pilot.socket if pilot.number is None else pilot.number)
    )


def difficulty_for_display(state: ApplicationState) -> list[tuple[str, bool]]:
    return sorted(state.difficulty.items())


def find_pilot(state: ApplicationState, name: str) -> Optional[Pilot]:
    for pilot in state.pilots.values():
        if pilot.name == name:
            return pilot
    return None


def describe_mission(mission: Mission) -> str:
    if mission.status == MissionStatus.PLAYING:
        return f"Playing {mission.name}"
    if mission.status == MissionStatus.LOADED:
        return f"Loaded {mission.name}"
    return "No mission loaded"
