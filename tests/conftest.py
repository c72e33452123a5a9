"""
Shared fixtures.
"""

import logging

import pytest

import lazything.cache
import lazything.config
import lazything.credentials
from lazything.logger import LOGGER_NAME


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Keep credentials, caches and config files out of the real home directory."""
    config_dir = tmp_path / "home" / ".config" / "lazything"
    cache_dir = tmp_path / "home" / ".cache" / "lazything" / "cache"
    monkeypatch.setattr(lazything.credentials, "CONFIG_DIR", str(config_dir))
    monkeypatch.setattr(lazything.cache, "CACHE_DIR", str(cache_dir))
    monkeypatch.setattr(
        lazything.config,
        "DEFAULT_CONFIG_PATHS",
        ["lazything.yaml", "lazything.yml", str(config_dir / "config.yaml")],
    )
    return tmp_path / "home"


@pytest.fixture(autouse=True)
def reset_logger():
    """Undo setup_logger() so caplog sees records again."""
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
