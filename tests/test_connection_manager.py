import asyncio
import json
import socket

import pytest
import websockets

from connection_manager import ConnectionManager, ConnectionState, ConnectionStateError, NotConnectedError
from messages import ConsoleCommand, ConsoleMessage, Connected, Disconnected

pytestmark = pytest.mark.asyncio


def uri_of(server):
    host, port = server.sockets[0].getsockname()[:2]
    return f"ws://{host}:{port}"


def unused_port():
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


class Recorder:

    def __init__(self):
        self.events = []
        self.errors = []

    async def on_event(self, event):
        self.events.append(event)

    def on_decode_error(self, frame, error):
        self.errors.append(frame)


async def test_frames_are_forwarded_in_order():
    async def handler(websocket):
        await websocket.send(json.dumps({"ConsoleMessage": {"message": "one"}}))
        await websocket.send("not json")
        await websocket.send(json.dumps({"ConsoleMessage": {"message": "two"}}))

    recorder = Recorder()
    async with websockets.serve(handler, "127.0.0.1", 0) as server:
        manager = ConnectionManager(recorder.on_event, recorder.on_decode_error)
        handle = await manager.connect(uri_of(server))
        assert manager.state == ConnectionState.OPEN
        await asyncio.wait_for(manager.receive_forever(), 5)

    assert recorder.events == [Connected(handle), ConsoleMessage("one"), ConsoleMessage("two"), Disconnected()]
    assert recorder.errors == ["not json"]
    assert manager.state == ConnectionState.CLOSED
    assert manager.handle is None


async def test_commands_reach_the_daemon():
    received = asyncio.Queue()

    async def handler(websocket):
        async for frame in websocket:
            await received.put(json.loads(frame))

    recorder = Recorder()
    async with websockets.serve(handler, "127.0.0.1", 0) as server:
        async with ConnectionManager(recorder.on_event) as manager:
            handle = await manager.connect(uri_of(server))
            await manager.send(ConsoleCommand("server"), handle)
            await manager.send(ConsoleCommand("mission"))
            assert await asyncio.wait_for(received.get(), 5) == {"ConsoleCommand": {"command": "server"}}
            assert await asyncio.wait_for(received.get(), 5) == {"ConsoleCommand": {"command": "mission"}}

    assert recorder.events[-1] == Disconnected()
    assert recorder.events.count(Disconnected()) == 1


async def test_send_before_connect_is_rejected():
    manager = ConnectionManager(Recorder().on_event)
    assert manager.state == ConnectionState.IDLE
    with pytest.raises(NotConnectedError):
        await manager.send(ConsoleCommand("server"))


async def test_failed_connect_reports_disconnected():
    recorder = Recorder()
    manager = ConnectionManager(recorder.on_event, open_timeout=2)
    handle = await manager.connect(f"ws://127.0.0.1:{unused_port()}")

    assert handle is None
    assert manager.state == ConnectionState.CLOSED
    assert recorder.events == [Disconnected()]
    with pytest.raises(NotConnectedError):
        await manager.send(ConsoleCommand("server"))


async def test_reconnect_rejects_stale_handle():
    async def handler(websocket):
        async for _ in websocket:
            pass

    recorder = Recorder()
    async with websockets.serve(handler, "127.0.0.1", 0) as server:
        manager = ConnectionManager(recorder.on_event)
        first = await manager.connect(uri_of(server))
        with pytest.raises(ConnectionStateError):
            await manager.connect(uri_of(server))
        await manager.close()
        await manager.close()

        second = await manager.connect(uri_of(server))
        assert second != first
        with pytest.raises(NotConnectedError):
            await manager.send(ConsoleCommand("server"), first)
        await manager.send(ConsoleCommand("server"), second)
        await manager.close()

    assert recorder.events == [Connected(first), Disconnected(), Connected(second), Disconnected()]


async def test_deeply_nested_frame_does_not_stop_receiving():
    async def handler(websocket):
        await websocket.send("[" * 100000)
        await websocket.send(json.dumps({"ConsoleMessage": {"message": "still here"}}))

    recorder = Recorder()
    async with websockets.serve(handler, "127.0.0.1", 0) as server:
        manager = ConnectionManager(recorder.on_event, recorder.on_decode_error)
        handle = await manager.connect(uri_of(server))
        await asyncio.wait_for(manager.receive_forever(), 5)

    assert len(recorder.errors) == 1
    assert recorder.events == [Connected(handle), ConsoleMessage("still here"), Disconnected()]
    assert manager.state == ConnectionState.CLOSED


async def test_close_while_connecting_abandons_the_handshake():
    release = asyncio.Event()

    async def silent(reader, writer):
        await release.wait()
        writer.close()

    server = await asyncio.start_server(silent, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    recorder = Recorder()
    manager = ConnectionManager(recorder.on_event, open_timeout=30)
    try:
        connecting = asyncio.create_task(manager.connect(f"ws://127.0.0.1:{port}"))
        await asyncio.sleep(0)
        assert manager.state == ConnectionState.CONNECTING

        await manager.close()
        assert await asyncio.wait_for(connecting, 5) is None
    finally:
        release.set()
        server.close()
        await server.wait_closed()

    assert manager.state == ConnectionState.CLOSED
    assert manager.handle is None
    assert recorder.events == [Disconnected()]


async def test_failing_callback_still_disconnects_once():
    async def handler(websocket):
        await websocket.send(json.dumps({"ConsoleMessage": {"message": "boom"}}))
        async for _ in websocket:
            pass

    events = []

    async def on_event(event):
        events.append(event)
        if isinstance(event, ConsoleMessage):
            raise RuntimeError("listener failed")

    async with websockets.serve(handler, "127.0.0.1", 0) as server:
        manager = ConnectionManager(on_event)
        await manager.connect(uri_of(server))
        with pytest.raises(RuntimeError):
            await asyncio.wait_for(manager.receive_forever(), 5)

    assert manager.state == ConnectionState.CLOSED
    assert events.count(Disconnected()) == 1
    assert events[-1] == Disconnected()
