"""Error taxonomy for the Databasin CLI.

Every failure observed by the request engine is normalized into one of
these kinds at the point it is first seen. Command handlers pick the
user-facing message and the process exit code from the kind.
"""

import re
from typing import Any, List, Optional, Pattern, Sequence, Tuple

# --- Exit Codes ---
EXIT_GENERIC = 1
EXIT_VALIDATION = 2
EXIT_AUTH = 3
EXIT_NETWORK = 4
EXIT_API = 5
EXIT_LOCAL_FILES = 6


class CliError(Exception):
    """Base class for all errors surfaced to the command line."""

    label = "Error"

    def __init__(self, message: str, exit_code: int = EXIT_GENERIC, suggestion: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.exit_code = exit_code
        self.suggestion = suggestion

    def format(self) -> str:
        """Renders the error for terminal output."""
        output = f"{self.label}: {self.message}"
        if self.suggestion:
            output += f"\n\nSuggestion: {self.suggestion}"
        return output


# (status code, endpoint pattern or None, suggestion)
_SUGGESTION_RULES: List[Tuple[int, Optional[Pattern[str]], str]] = [
    (404, re.compile(r"/api/connector"), "Connector not found. Run 'databasin connectors list --full' to see available connectors."),
    (404, re.compile(r"/api/pipeline"), "Pipeline not found. Run 'databasin pipelines list --project <id>' to see available pipelines."),
    (404, re.compile(r"/api/project"), "Project not found. Run 'databasin projects list' to see available projects."),
    (404, re.compile(r"/api/automations/"), "Automation not found. Run 'databasin automations list --project <id>' to see available automations."),
    (403, re.compile(r"/api/project"), "Access denied to this project. Check that you're a member of the project."),
    (403, re.compile(r"/api/connector"), "Access denied to this connector. Verify you have permission for this project's connectors."),
    (403, re.compile(r"/api/pipeline"), "Access denied to this pipeline. Verify you have permission for this project's pipelines."),
    (400, re.compile(r"/api/pipeline$"), "Invalid pipeline configuration. Check that all required fields are present and properly formatted."),
    (400, re.compile(r"/api/connector$"), "Invalid connector configuration. Check that all required fields are present and properly formatted."),
    (400, None, "Check your request parameters and payload syntax. Verify required fields are present."),
    (401, None, "Your authentication token may be invalid or expired. Run: databasin auth status"),
    (403, None, "You do not have permission to access this resource. Check your project access rights."),
    (404, None, "The requested resource was not found. Verify the ID and try again."),
    (409, None, "Conflict with existing resource. This name or identifier may already be in use."),
    (422, None, "Validation failed. Check that all fields meet the required format and constraints."),
    (429, None, "Rate limit exceeded. Please wait a moment before retrying."),
    (500, None, "The Databasin API is experiencing issues. Please try again later."),
    (502, None, "The Databasin API is experiencing issues. Please try again later."),
    (503, None, "The Databasin API is experiencing issues. Please try again later."),
    (504, None, "The Databasin API is experiencing issues. Please try again later."),
]


def suggestion_for_status(status_code: int, endpoint: Optional[str] = None) -> str:
    """Returns a hint for an HTTP failure.

    Endpoint-specific rules are consulted before the generic rule for the
    same status code.
    """
    for rule_status, pattern, suggestion in _SUGGESTION_RULES:
        if rule_status != status_code:
            continue
        if pattern is None:
            return suggestion
        if endpoint and pattern.search(endpoint.split("?", 1)[0]):
            return suggestion
    return "Check the error message above for details."


class ApiError(CliError):
    """Non-2xx HTTP response from the API."""

    label = "API Error"

    def __init__(
        self,
        message: str,
        status_code: int,
        endpoint: str,
        status_text: Optional[str] = None,
        response_body: Any = None,
    ):
        super().__init__(message, EXIT_API, suggestion_for_status(status_code, endpoint))
        self.status_code = status_code
        self.endpoint = endpoint
        self.status_text = status_text
        self.response_body = response_body

    def format(self) -> str:
        output = f"{self.label} ({self.status_code}): {self.message}\nEndpoint: {self.endpoint}"
        if self.suggestion:
            output += f"\n\nSuggestion: {self.suggestion}"
        return output


class NetworkError(CliError):
    """Transport failure or timeout; the request never produced a response."""

    label = "Network Error"

    def __init__(self, message: str, url: Optional[str] = None, timed_out: bool = False, retryable: bool = False):
        super().__init__(
            message,
            EXIT_NETWORK,
            "Check your internet connection and verify the API URL is correct",
        )
        self.url = url
        self.timed_out = timed_out
        # A timeout is terminal even when the caller asked for retries.
        self.retryable = retryable and not timed_out


class AuthError(CliError):
    """No usable credential could be resolved."""

    label = "Authentication Error"

    def __init__(self, message: str, suggestion: Optional[str] = None):
        super().__init__(message, EXIT_AUTH, suggestion or "Run: databasin auth status")


class ValidationError(CliError):
    """Caller-supplied arguments failed a precondition."""

    label = "Validation Error"

    def __init__(self, message: str, field: Optional[str] = None, errors: Optional[Sequence[str]] = None):
        self.field = field
        self.errors = list(errors or [])
        suggestion = None
        if len(self.errors) == 1:
            suggestion = self.errors[0]
        elif self.errors:
            suggestion = "Fix the following validation errors:\n  - " + "\n  - ".join(self.errors)
        super().__init__(message, EXIT_VALIDATION, suggestion)

    def format(self) -> str:
        output = f"{self.label}: {self.message}"
        if self.field:
            output += f" (field: {self.field})"
        if self.suggestion:
            output += f"\n\n{self.suggestion}"
        return output


class FileSystemError(CliError):
    """A credential or configuration file exists but could not be read."""

    label = "File System Error"

    def __init__(self, message: str, path: str, operation: str = "read"):
        super().__init__(
            message,
            EXIT_LOCAL_FILES,
            f"Check that the file exists and you have {operation} permissions: {path}",
        )
        self.path = path
        self.operation = operation


class ConfigError(CliError):
    """Configuration values are present but invalid."""

    label = "Configuration Error"

    def __init__(self, message: str, config_path: Optional[str] = None):
        super().__init__(message, EXIT_LOCAL_FILES, "Check your configuration file or environment variables")
        self.config_path = config_path

    def format(self) -> str:
        output = f"{self.label}: {self.message}"
        if self.config_path:
            output += f"\nConfig file: {self.config_path}"
        output += f"\n\nSuggestion: {self.suggestion}"
        return output


class BulkOperationError(CliError):
    """Aggregate failure of a multi-item command."""

    label = "Bulk Operation Failed"

    def __init__(self, message: str, failed_ids: Sequence[str]):
        super().__init__(message, EXIT_GENERIC)
        self.failed_ids = list(failed_ids)

    def format(self) -> str:
        return self.message


def format_error(error: BaseException) -> str:
    """Formats any exception for CLI display."""
    if isinstance(error, CliError):
        return error.format()
    return f"Error: {error}"


def get_exit_code(error: BaseException) -> int:
    if isinstance(error, CliError):
        return error.exit_code
    return EXIT_GENERIC
