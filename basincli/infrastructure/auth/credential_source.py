"""Layered bearer-token resolution.

Precedence, first match wins:
1. DATABASIN_TOKEN environment variable
2. Project token file (<cwd>/.token)
3. User token file (~/.databasin/.token)

The resolved token is cached on the instance until invalidate() is called.
Nothing here ever writes to disk.
"""

import logging
import os
from pathlib import Path
from typing import List, Mapping, Optional

from basincli.domain.errors import AuthError, FileSystemError
from basincli.domain.interfaces.credentials import CredentialProvider
from basincli.domain.models.common import Credential

logger = logging.getLogger(__name__)

TOKEN_ENV_VAR = "DATABASIN_TOKEN"
TOKEN_FILE_NAME = ".token"
DEFAULT_USER_TOKEN_PATH = Path.home() / ".databasin" / TOKEN_FILE_NAME


class CredentialSource(CredentialProvider):
    """Resolves and caches the bearer credential for one CLI session."""

    def __init__(
        self,
        env_var: str = TOKEN_ENV_VAR,
        project_dir: Optional[Path] = None,
        user_token_path: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        """Initializes the credential source.

        Args:
            env_var: Name of the environment variable override.
            project_dir: Directory holding the project token file (defaults to cwd at resolve time).
            user_token_path: Path of the user-wide token file.
            environ: Environment mapping (defaults to os.environ).
        """
        self.env_var = env_var
        self.project_dir = project_dir
        self.user_token_path = user_token_path or DEFAULT_USER_TOKEN_PATH
        self._environ = environ if environ is not None else os.environ
        self._cached: Optional[Credential] = None

    def token_paths(self) -> List[Path]:
        """Token file locations, highest priority first."""
        project_dir = self.project_dir or Path.cwd()
        return [project_dir / TOKEN_FILE_NAME, self.user_token_path]

    def resolve(self) -> Credential:
        if self._cached is None:
            self._cached = self._load()
        return self._cached

    def invalidate(self) -> None:
        if self._cached is not None:
            logger.debug("Cached credential invalidated.")
        self._cached = None

    @property
    def is_cached(self) -> bool:
        return self._cached is not None

    def describe_source(self) -> Optional[str]:
        if self._from_env():
            return f"environment variable ({self.env_var})"
        for path in self.token_paths():
            if path.is_file():
                return str(path)
        return None

    # --- Sources ---

    def _from_env(self) -> Optional[str]:
        value = self._environ.get(self.env_var, "")
        return value.strip() or None

    def _from_file(self, path: Path) -> Optional[str]:
        if not path.is_file():
            return None
        try:
            return path.read_text(encoding="utf-8").strip() or None
        except (OSError, UnicodeDecodeError) as e:
            raise FileSystemError(f"Failed to read token file: {e}", str(path), "read") from e

    def _load(self) -> Credential:
        token = self._from_env()
        if token:
            logger.debug(f"Credential resolved from environment variable {self.env_var}.")
            return Credential(token)

        paths = self.token_paths()
        for path in paths:
            token = self._from_file(path)
            if token:
                logger.debug(f"Credential resolved from token file {path}.")
                return Credential(token)

        raise AuthError(
            "No authentication token found",
            "Token must be provided via:\n"
            f"  1. Environment variable: {self.env_var}\n"
            f"  2. Project token file: {paths[0]}\n"
            f"  3. User token file: {paths[1]}",
        )
