import pytest

from app_state import ConnectionHandle
from config import Endpoint
from messages import Connected, Disconnected
from session_controller import SessionController


class RecordingConnection:
    """Stands in for ConnectionManager, keeps the text of every command sent."""

    def __init__(self):
        self.sent = []
        self.on_event = None
        self.handle = None
        self._ids = 0

    async def connect(self, uri):
        self._ids += 1
        self.handle = ConnectionHandle(self._ids, uri)
        await self.on_event(Connected(self.handle))
        return self.handle

    async def receive_forever(self):
        pass

    async def send(self, command, handle=None):
        self.sent.append(command.command)

    async def close(self):
        if self.handle is not None:
            self.handle = None
            await self.on_event(Disconnected())


@pytest.fixture
def connection():
    return RecordingConnection()


@pytest.fixture
def session(connection):
    session = SessionController(Endpoint("127.0.0.1", 8080), connection=connection)
    connection.on_event = session.handle_event
    return session
