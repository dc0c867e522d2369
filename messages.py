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
Wire messages exchanged with the server daemon.

Every frame is a JSON object with exactly one key, the message tag, whose value
is an object holding the named fields of the message:

    {"ConsoleCommand": {"command": "server"}}

The client only ever sends ConsoleCommand. Everything the daemon sends is
decoded into one of the event dataclasses below, or into Unrecognized when the
tag is unknown.
"""

import dataclasses
import json
from typing import Any, Optional, Union


class DecodeError(Exception): pass


# Client messages

@dataclasses.dataclass(frozen=True)
class ConsoleCommand:
    TAG = "ConsoleCommand"

    command: str


# Server messages

@dataclasses.dataclass(frozen=True)
class ConsoleMessage:
    TAG = "ConsoleMessage"

    message: Optional[str] = None


@dataclasses.dataclass(frozen=True)
class PilotJoinMessage:
    TAG = "PilotJoinMessage"

    socket: Any = None
    ip: Optional[str] = None
    port: Optional[int] = None
    name: Optional[str] = None


@dataclasses.dataclass(frozen=True)
class HostMessage:
    TAG = "HostMessage"

    socket: Any = None
    ip: Optional[str] = None
    port: Optional[int] = None
    name: Optional[str] = None
    number: Optional[int] = None


@dataclasses.dataclass(frozen=True)
class UserMessage:
    TAG = "UserMessage"

    number: Optional[int] = None
    ping: Optional[int] = None
    score: Optional[int] = None
    army: Optional[str] = None
    aircraft: Optional[str] = None


@dataclasses.dataclass(frozen=True)
class PilotLeaveMessage:
    TAG = "PilotLeaveMessage"

    socket: Any = None


@dataclasses.dataclass(frozen=True)
class MissionPlayingMessage:
    TAG = "MissionPlayingMessage"

    mission: Optional[str] = None


@dataclasses.dataclass(frozen=True)
class MissionLoadedMessage:
    TAG = "MissionLoadedMessage"

    mission: Optional[str] = None


@dataclasses.dataclass(frozen=True)
class MissionNotLoadedMessage:
    TAG = "MissionNotLoadedMessage"


@dataclasses.dataclass(frozen=True)
class IPBanMessage:
    TAG = "IPBanMessage"

    ip: Optional[str] = None


@dataclasses.dataclass(frozen=True)
class NameBanMessage:
    TAG = "NameBanMessage"

    name: Optional[str] = None


@dataclasses.dataclass(frozen=True)
class DifficultyMessage:
    TAG = "DifficultyMessage"

    setting: Optional[str] = None
    enabled: Optional[bool] = None


@dataclasses.dataclass(frozen=True)
class Unrecognized:
    """A well-formed frame whose tag this client does not know."""
    tag: str
    payload: Any = None


# Internal messages, raised locally and never decoded from the wire

@dataclasses.dataclass(frozen=True)
class Connected:
    handle: Any


@dataclasses.dataclass(frozen=True)
class Disconnected:
    pass


@dataclasses.dataclass(frozen=True)
class ClearBans:
    pass


SERVER_MESSAGES = {
    message_type.TAG: message_type for message_type in (
        ConsoleMessage,
        PilotJoinMessage,
        HostMessage,
        UserMessage,
        PilotLeaveMessage,
        MissionPlayingMessage,
        MissionLoadedMessage,
        MissionNotLoadedMessage,
        IPBanMessage,
        NameBanMessage,
        DifficultyMessage,
    )
}

Event = Union[
    ConsoleMessage, PilotJoinMessage, HostMessage, UserMessage, PilotLeaveMessage,
    MissionPlayingMessage, MissionLoadedMessage, MissionNotLoadedMessage,
    IPBanMessage, NameBanMessage, DifficultyMessage,
    Unrecognized, Connected, Disconnected, ClearBans,
]


def encode(command: ConsoleCommand) -> str:
    return json.dumps({command.TAG: dataclasses.asdict(command)})


def decode(frame: Union[str, bytes]) -> Event:
    try:
        if isinstance(frame, bytes):
            frame = frame.decode("utf-8")
        packet = json.loads(frame)
    except (UnicodeDecodeError, json.JSONDecodeError, RecursionError) as e:
        raise DecodeError(f"Frame is not valid JSON: {e}") from e

    if not isinstance(packet, dict):
        raise DecodeError(f"Frame is not an object: {type(packet).__name__}")
    if len(packet) != 1:
        raise DecodeError(f"Frame must have exactly one tag, got {len(packet)}")

    (tag, content), = packet.items()
    if tag not in SERVER_MESSAGES:
        return Unrecognized(tag, content)
    if not isinstance(content, dict):
        raise DecodeError(f"Content of {tag} is not an object")

    message_type = SERVER_MESSAGES[tag]
    return message_type(**{
        field.name: content.get(field.name) for field in dataclasses.fields(message_type)
    })
