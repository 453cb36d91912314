"""Request, shaping and bulk-result models."""

from dataclasses import dataclass, field
from typing import Any, Dict, Generic, Mapping, Optional, Sequence, Tuple, TypeVar

from basincli.domain.errors import ValidationError

T = TypeVar("T")

HTTP_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE")


@dataclass(frozen=True)
class RequestSpec:
    """One logical HTTP call.

    Immutable; retries and the reauth retry reuse the same instance.
    `timeout`, `retries` and `retry_delay` fall back to the configured
    defaults when left as None. Durations are in seconds.
    """
    method: str
    path: str
    params: Optional[Sequence[Tuple[str, Any]]] = None
    body: Any = None
    headers: Mapping[str, str] = field(default_factory=dict)
    timeout: Optional[float] = None
    retries: Optional[int] = None
    retry_delay: Optional[float] = None
    skip_auth: bool = False
    debug: Optional[bool] = None

    def __post_init__(self):
        method = self.method.upper()
        if method not in HTTP_METHODS:
            raise ValidationError(f"Unsupported HTTP method: {self.method}", field="method")
        object.__setattr__(self, "method", method)
        if isinstance(self.params, Mapping):
            object.__setattr__(self, "params", tuple(self.params.items()))
        elif self.params is not None:
            object.__setattr__(self, "params", tuple(self.params))
        if self.timeout is not None and self.timeout <= 0:
            raise ValidationError("Timeout must be greater than zero", field="timeout")
        if self.retries is not None and self.retries < 0:
            raise ValidationError("Retries cannot be negative", field="retries")
        if self.retry_delay is not None and self.retry_delay < 0:
            raise ValidationError("Retry delay cannot be negative", field="retry_delay")


@dataclass(frozen=True)
class ShapingOptions:
    """Response size reduction applied to successful reads.

    `count` takes precedence over `limit` and `fields`.
    """
    count: bool = False
    fields: Tuple[str, ...] = ()
    limit: Optional[int] = None

    def __post_init__(self):
        if self.limit is not None and self.limit < 1:
            raise ValidationError("Limit must be a positive integer", field="limit")
        # Ordered set: keep first occurrence of each field name.
        object.__setattr__(self, "fields", tuple(dict.fromkeys(f for f in self.fields if f)))

    @classmethod
    def from_cli(cls, count: bool = False, fields: Optional[str] = None, limit: Optional[int] = None) -> "ShapingOptions":
        """Builds options from the `--count/--fields/--limit` flags."""
        field_list: Tuple[str, ...] = ()
        if fields:
            field_list = tuple(name.strip() for name in fields.split(","))
        return cls(count=count, fields=field_list, limit=limit)

    @property
    def is_empty(self) -> bool:
        return not self.count and not self.fields and self.limit is None


@dataclass(frozen=True)
class BulkError:
    message: str
    status_code: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"message": self.message}
        if self.status_code is not None:
            data["statusCode"] = self.status_code
        return data


@dataclass(frozen=True)
class BulkResult(Generic[T]):
    """Outcome of one identifier in a bulk run. Exactly one of data/error is meaningful."""
    id: str
    success: bool
    data: Optional[T] = None
    error: Optional[BulkError] = None

    @classmethod
    def ok(cls, item_id: str, data: Optional[T]) -> "BulkResult[T]":
        return cls(id=item_id, success=True, data=data)

    @classmethod
    def failed(cls, item_id: str, exc: BaseException) -> "BulkResult[T]":
        message = str(exc) or type(exc).__name__
        status_code = getattr(exc, "status_code", None)
        if not isinstance(status_code, int):
            status_code = None
        return cls(id=item_id, success=False, error=BulkError(message=message, status_code=status_code))

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id": self.id, "success": self.success}
        if self.success:
            data["data"] = self.data
        elif self.error is not None:
            data["error"] = self.error.to_dict()
        return data
