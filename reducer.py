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
State reducer: (state, event) -> next state.

Never mutates its input. Events that fail their field schema, and events the
reducer has no handler for, return the state unchanged.
"""

import dataclasses
import logging

from voluptuous import Schema, Required, Any, All, Length
import voluptuous.error

from app_state import (
    ApplicationState, Pilot, Mission, IPBan, NameBan, MAX_CONSOLE_MESSAGES,
)
from messages import (
    Connected, Disconnected, ClearBans,
    ConsoleMessage, PilotJoinMessage, HostMessage, UserMessage, PilotLeaveMessage,
    MissionPlayingMessage, MissionLoadedMessage, MissionNotLoadedMessage,
    IPBanMessage, NameBanMessage, DifficultyMessage,
)


def integer(value):
    # bool is an int subclass, but true/false is never a number on the wire
    if isinstance(value, bool) or not isinstance(value, int):
        raise voluptuous.error.Invalid("expected int")
    return value


_socket = Any(integer, str)
_optional_int = Any(None, integer)
_optional_str = Any(None, str)

_join_fields = {
    Required('socket'): _socket,
    Required('ip'): _optional_str,
    Required('port'): _optional_int,
    Required('name'): _optional_str,
}

_schemas = {
    ConsoleMessage: Schema({Required('message'): str}),
    PilotJoinMessage: Schema(_join_fields),
    HostMessage: Schema({**_join_fields, Required('number'): integer}),
    UserMessage: Schema({
        Required('number'): integer,
        Required('ping'): _optional_int,
        Required('score'): _optional_int,
        Required('army'): _optional_str,
        Required('aircraft'): _optional_str,
    }),
    PilotLeaveMessage: Schema({Required('socket'): _socket}),
    MissionPlayingMessage: Schema({Required('mission'): str}),
    MissionLoadedMessage: Schema({Required('mission'): str}),
    IPBanMessage: Schema({Required('ip'): All(str, Length(min=1))}),
    NameBanMessage: Schema({Required('name'): All(str, Length(min=1))}),
    DifficultyMessage: Schema({Required('setting'): All(str, Length(min=1)), Required('enabled'): bool}),
}


def _connected(state: ApplicationState, event: Connected) -> ApplicationState:
    return dataclasses.replace(state, connected=True, connection_handle=event.handle)


def _disconnected(state: ApplicationState, event: Disconnected) -> ApplicationState:
    return dataclasses.replace(state, connected=False, connection_handle=None)


def _clear_bans(state: ApplicationState, event: ClearBans) -> ApplicationState:
    return dataclasses.replace(state, bans=())


def _console_message(state: ApplicationState, event: ConsoleMessage) -> ApplicationState:
    console_log = (state.console_log + (event.message,))[-MAX_CONSOLE_MESSAGES:]
    return dataclasses.replace(state, console_log=console_log)


def _pilot_join(state: ApplicationState, event: PilotJoinMessage) -> ApplicationState:
    # a join is always a fresh identity, stats from an earlier occupant of the socket are dropped
    pilot = Pilot(socket=event.socket, ip=event.ip, port=event.port, name=event.name)
    return dataclasses.replace(state, pilots={**state.pilots, event.socket: pilot})


def _host(state: ApplicationState, event: HostMessage) -> ApplicationState:
    pilot = Pilot(socket=event.socket, ip=event.ip, port=event.port, name=event.name, number=event.number)
    return dataclasses.replace(state, pilots={**state.pilots, event.socket: pilot})


def _user(state: ApplicationState, event: UserMessage) -> ApplicationState:
    existing = next((pilot for pilot in state.pilots.values() if pilot.number == event.number), None)
    if existing is None:
        return state

    pilot = dataclasses.replace(
        existing,
        number=event.number,
        ping=event.ping,
        score=event.score,
        army=event.army,
        aircraft=event.aircraft,
    )
    return dataclasses.replace(state, pilots={**state.pilots, existing.socket: pilot})


def _pilot_leave(state: ApplicationState, event: PilotLeaveMessage) -> ApplicationState:
    if event.socket not in state.pilots:
        return state
    pilots = {socket: pilot for socket, pilot in state.pilots.items() if socket != event.socket}
    return dataclasses.replace(state, pilots=pilots)


def _mission_playing(state: ApplicationState, event: MissionPlayingMessage) -> ApplicationState:
    return dataclasses.replace(state, mission=Mission.playing(event.mission))


def _mission_loaded(state: ApplicationState, event: MissionLoadedMessage) -> ApplicationState:
    return dataclasses.replace(state, mission=Mission.loaded(event.mission))


def _mission_not_loaded(state: ApplicationState, event: MissionNotLoadedMessage) -> ApplicationState:
    return dataclasses.replace(state, mission=Mission.not_loaded())


def _ip_ban(state: ApplicationState, event: IPBanMessage) -> ApplicationState:
    return dataclasses.replace(state, bans=state.bans + (IPBan(event.ip),))


def _name_ban(state: ApplicationState, event: NameBanMessage) -> ApplicationState:
    return dataclasses.replace(state, bans=state.bans + (NameBan(event.name),))


def _difficulty(state: ApplicationState, event: DifficultyMessage) -> ApplicationState:
    return dataclasses.replace(state, difficulty={**state.difficulty, event.setting: event.enabled})


_handlers = {
    Connected: _connected,
    Disconnected: _disconnected,
    ClearBans: _clear_bans,
    ConsoleMessage: _console_message,
    PilotJoinMessage: _pilot_join,
    HostMessage: _host,
    UserMessage: _user,
    PilotLeaveMessage: _pilot_leave,
    MissionPlayingMessage: _mission_playing,
    MissionLoadedMessage: _mission_loaded,
    MissionNotLoadedMessage: _mission_not_loaded,
    IPBanMessage: _ip_ban,
    NameBanMessage: _name_ban,
    DifficultyMessage: _difficulty,
}


def is_valid(event) -> bool:
    schema = _schemas.get(type(event))
    if schema is None:
        return True
    try:
        schema(dataclasses.asdict(event))
    except voluptuous.error.MultipleInvalid as e:
        logging.warning(f"Dropping {type(event).__name__} with invalid field {e.path}: {event}")
        return False
    return True


def reduce(state: ApplicationState, event) -> ApplicationState:
    handler = _handlers.get(type(event))
    if handler is None:
        return state
    if not is_valid(event):
        return state
    return handler(state, event)
