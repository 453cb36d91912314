"""Interface for presenting command results to the user.

Defines the contract for displaying data, reports, errors and warnings,
allowing different UI implementations (e.g., rich console, plain text).
"""

import abc
from typing import Any, Optional


class UserInterface(abc.ABC):
    """Abstract Base Class for user interaction."""

    @abc.abstractmethod
    def display_data(self, data: Any, title: Optional[str] = None, **kwargs: Any) -> None:
        """Displays a command result (a JSON-like value).

        Args:
            data: The value returned by a resource client.
            title: Optional heading for table output.
            **kwargs: Additional arguments for formatting.
        """
        pass

    @abc.abstractmethod
    def display_report(self, report: str, **kwargs: Any) -> None:
        """Displays a pre-formatted multi-line report (e.g., bulk results)."""
        pass

    @abc.abstractmethod
    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message to the user.

        Args:
            error_message: The error message string.
            **kwargs: Additional arguments for formatting.
        """
        pass

    @abc.abstractmethod
    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        """Displays a warning message to the user.

        Args:
            warning_message: The warning message string.
            **kwargs: Additional arguments for formatting.
        """
        pass

    @abc.abstractmethod
    def display_info(self, info_message: str, **kwargs: Any) -> None:
        """Displays an informational message to the user.

        Args:
            info_message: The informational message string.
            **kwargs: Additional arguments for formatting.
        """
        pass

    def start_progress(self, message: str) -> None:
        """Shows a transient progress indicator. No-op unless overridden."""

    def update_progress(self, message: str) -> None:
        """Replaces the progress indicator's message."""

    def stop_progress(self) -> None:
        """Removes the progress indicator."""
