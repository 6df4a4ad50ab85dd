"""Global command-line options and how they locate the config."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from .api import Clash
from .config import Config
from .errors import (
    ConfigFileIoError,
    ConfigFileOpenError,
    ConfigFileTypeError,
    ServerNotFound,
)

logger = logging.getLogger(__name__)

DEFAULT_TEST_URL = "http://www.gstatic.com/generate_204"


@dataclass
class Flags:
    """Options shared by all commands; timeout is in milliseconds."""

    verbose: int = 0
    timeout: int = 2000
    config_dir: Path | None = None
    config_path: Path | None = None
    test_url: str = DEFAULT_TEST_URL

    def get_config(self) -> Config:
        if self.config_path is not None:
            return Config.from_path(self.config_path)
        if self.config_dir is not None:
            conf_dir = Path(self.config_dir)
        else:
            try:
                conf_dir = Path.home() / ".config" / "clashctl"
            except RuntimeError as exc:
                raise ConfigFileOpenError() from exc
        if not conf_dir.exists():
            logger.debug("Config directory does not exist, creating.")
            try:
                conf_dir.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise ConfigFileIoError(exc) from exc
        if not conf_dir.is_dir():
            raise ConfigFileTypeError(conf_dir)
        logger.debug("Path to config: %s", conf_dir)
        return Config.from_path(conf_dir / "config.ron")

    def connect_server_from_config(self) -> Clash:
        server = self.get_config().using_server()
        if server is None:
            raise ServerNotFound()
        return server.into_clash_with_timeout(self.timeout / 1000)