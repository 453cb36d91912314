"""Interface for bearer credential providers."""

import abc
from typing import Optional

from basincli.domain.models.common import Credential


class CredentialProvider(abc.ABC):
    """Abstract Base Class for a cached, invalidatable credential."""

    @abc.abstractmethod
    def resolve(self) -> Credential:
        """Returns the cached credential, loading it on first use.

        Raises:
            AuthError: If no source yields a credential.
            FileSystemError: If a token file exists but cannot be read.
        """
        pass

    @abc.abstractmethod
    def invalidate(self) -> None:
        """Drops the cached credential so the next resolve() re-reads sources."""
        pass

    def describe_source(self) -> Optional[str]:
        """Human-readable name of the source that would supply the credential."""
        return None
