"""Defines common Value Objects used across the request engine.

These objects represent simple values like credentials and response
bodies, ensuring consistency and type safety.
"""

from typing import Any, Mapping, NewType, Sequence, Tuple, Union

# === Core Value Objects ===

# Using NewType for semantic clarity, although it is a string at runtime.
Credential = NewType("Credential", str)  # Opaque bearer token

# Parsed JSON body of a successful call. Unvalidated beyond "is JSON".
ResponseEnvelope = Any

# Ordered pairs or a mapping; None values are dropped from the query string.
QueryParams = Union[Mapping[str, Any], Sequence[Tuple[str, Any]]]
