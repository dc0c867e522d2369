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
import os

from command_issuer import CommandIssuer
from config import Config, ConfigurationLoadError, Endpoint
from logger import setup_logging
from operator_console import OperatorConsole
from session_controller import SessionController


class SsdClient:

    def __init__(self, endpoint: Endpoint):
        self._session = SessionController(endpoint)
        self._issuer = CommandIssuer(self._session)
        self._console = OperatorConsole(self._session, self._issuer)
        self._session.subscribe(self._console.on_state)

    async def begin(self):
        logging.info(f"Starting IL-2 SSD client for {self._session.endpoint.uri}")
        async with self._session:
            session_task = asyncio.create_task(self._session.run())
            console_task = asyncio.create_task(self._console.read_stdin())
            try:
                logging.info("Type /help for commands, /quit or Ctrl^D to quit")
                await asyncio.wait([session_task, console_task], return_when=asyncio.FIRST_COMPLETED)
                if session_task.done():
                    logging.warning("Connection to the daemon ended. Restart the client to reconnect.")
            except asyncio.CancelledError:
                logging.info("Cancelled ...")
            finally:
                logging.info("Stopping client ...")
                console_task.cancel()
                await self._finish(console_task)

        await self._finish(session_task)

    @staticmethod
    async def _finish(task: asyncio.Task):
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logging.exception(e)


async def main():
    logging.info("Starting IL-2 SSD client ...")

    config = Config(os.environ.get("IL2SSD_CONFIG", "./config.toml"))

    try:
        await config.initialize()
        endpoint = config.endpoint()
    except ConfigurationLoadError:
        logging.error("Could not load configuration. Exiting")
        return

    client = SsdClient(endpoint)
    await client.begin()


def run():
    setup_logging()
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logging.info("Cancelled ...")


if __name__ == "__main__":
    run()
