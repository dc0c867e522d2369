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
import logging
import os
from pathlib import Path
from typing import Mapping, Optional

from voluptuous import Schema, Required, Optional as OptionalKey, All, Any, Range, Length, Coerce, Boolean
import voluptuous.error
import aiofiles
import tomlkit
import tomlkit.exceptions

PRODUCTION = "production"
DEVELOPMENT = "development"


class ConfigurationLoadError(Exception): pass


@dataclasses.dataclass(frozen=True)
class Endpoint:
    host: str
    port: int
    secure: bool = False

    @property
    def uri(self) -> str:
        scheme = "wss" if self.secure else "ws"
        return f"{scheme}://{self.host}:{self.port}"


class Config:
    config: dict

    def __init__(self, config_location: Path):
        self.config_location = config_location

        self.config_schema = Schema({
            Required('daemon'): {
                Required('host'): All(str, Length(min=1)),
                Required('port'): All(int, Range(min=1, max=65535)),
                OptionalKey('secure', default=False): bool,
            },
            OptionalKey('client', default={}): {
                OptionalKey('environment', default=PRODUCTION): Any(PRODUCTION, DEVELOPMENT),
            },
        })
        self.environment_schema = Schema({
            OptionalKey('IL2SSD_ENV'): Any(PRODUCTION, DEVELOPMENT),
            OptionalKey('IL2SSD_HOST'): All(str, Length(min=1)),
            OptionalKey('IL2SSD_PORT'): All(Coerce(int), Range(min=1, max=65535)),
            OptionalKey('IL2SSD_SECURE'): Boolean(),
        }, extra=voluptuous.REMOVE_EXTRA)

    async def initialize(self):
        try:
            async with aiofiles.open(self.config_location, 'r') as config_file:
                file_data = await config_file.read()
                document = tomlkit.parse(file_data)
                logging.debug("Loaded Configuration without toml format error")
                logging.debug("Validating against Schema.")
                self.config = self.config_schema(document.unwrap())
                logging.debug("Validated against Schema.")
        except FileNotFoundError as e:
            logging.exception(e)
            logging.warning(
                f"Could not find {self.config_location}. Copy from .example/config.toml to {self.config_location}")
            raise ConfigurationLoadError() from e
        except IOError as e:
            logging.exception(e)
            logging.warning(f"Could not open file {self.config_location}")
            raise ConfigurationLoadError() from e
        except tomlkit.exceptions.ParseError as e:
            logging.exception(e)
            logging.warning(f"Configuration in {self.config_location} is invalid")
            raise ConfigurationLoadError() from e
        except voluptuous.error.MultipleInvalid as e:
            logging.exception(e)
            logging.warning(f"Configuration in {self.config_location} does not match expected format")
            logging.warning(f"Issue configuration item: {e.path}")
            raise ConfigurationLoadError() from e

        logging.info(f"Configuration loaded.")

    def endpoint(self, environ: Optional[Mapping[str, str]] = None) -> Endpoint:
        """
        Work out where the daemon lives.

        The scheme is ``wss`` only when the deployment is served securely. In
        production host and port come from the configuration file; in
        development ``IL2SSD_HOST`` and ``IL2SSD_PORT`` override them.
        """
        if environ is None:
            environ = os.environ
        try:
            overrides = self.environment_schema(dict(environ))
        except voluptuous.error.MultipleInvalid as e:
            logging.warning(f"Environment does not match expected format")
            logging.warning(f"Issue environment variable: {e.path}")
            raise ConfigurationLoadError() from e

        daemon = self.config['daemon']
        environment = overrides.get('IL2SSD_ENV', self.config['client']['environment'])
        secure = overrides.get('IL2SSD_SECURE', daemon['secure'])

        if environment == DEVELOPMENT:
            endpoint = Endpoint(
                overrides.get('IL2SSD_HOST', daemon['host']),
                overrides.get('IL2SSD_PORT', daemon['port']),
                secure,
            )
        else:
            endpoint = Endpoint(daemon['host'], daemon['port'], secure)

        logging.debug(f"Daemon endpoint ({environment}): {endpoint.uri}")
        return endpoint
