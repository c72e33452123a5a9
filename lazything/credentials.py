"""
GitHub token storage.

The token lives in a single plain-text file under the user's config
directory. Reading a missing file creates it empty.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from .core import CredentialMissing

logger = logging.getLogger(__name__)

CONFIG_DIR = os.path.join(Path.home(), '.config/lazything')
AUTH_FILENAME = 'auth.txt'


class CredentialStore:
    """Reads and writes the authentication token."""

    def __init__(self, config_dir: Optional[str] = None):
        self.config_dir = Path(config_dir or CONFIG_DIR)
        self.path = self.config_dir / AUTH_FILENAME

    def get(self) -> Optional[str]:
        """Return the stored token, or None when nothing is stored."""
        try:
            token = self.path.read_text(encoding='utf-8').strip()
        except FileNotFoundError:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            self.path.touch()
            logger.debug(f"Created empty credential file at {self.path}")
            return None

        return token or None

    def set(self, token: str):
        """Persist a new token, replacing any previous one."""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.path.write_text(token.strip(), encoding='utf-8')
        logger.debug(f"Stored credential at {self.path}")

    @property
    def has_token(self) -> bool:
        return self.get() is not None

    def require(self) -> str:
        """Return the stored token or raise CredentialMissing."""
        token = self.get()
        if token is None:
            raise CredentialMissing()
        return token
