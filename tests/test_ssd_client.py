import asyncio
import logging

import pytest

from config import Endpoint
from ssd_client import SsdClient

pytestmark = pytest.mark.asyncio


async def test_session_failure_is_logged_and_console_stopped(caplog, monkeypatch):
    client = SsdClient(Endpoint("127.0.0.1", 8080))
    console_stopped = asyncio.Event()

    async def failing_run():
        raise RuntimeError("daemon exploded")

    async def idle_console():
        try:
            await asyncio.Event().wait()
        finally:
            console_stopped.set()

    monkeypatch.setattr(client._session, "run", failing_run)
    monkeypatch.setattr(client._console, "read_stdin", idle_console)

    with caplog.at_level(logging.ERROR):
        await asyncio.wait_for(client.begin(), 5)

    assert "daemon exploded" in caplog.text
    assert console_stopped.is_set()
