"""
Value types shared by the registry, builders and batch executor.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional


class BatchMode(str, Enum):
    """How the batch executor reacts to a failing item."""

    ABORT_ON_ERROR = "abort"
    COLLECT_ERRORS = "collect"

    @classmethod
    def from_flag(cls, continue_on_fail: bool) -> "BatchMode":
        return cls.COLLECT_ERRORS if continue_on_fail else cls.ABORT_ON_ERROR


class OperationClass(str, Enum):
    """Request body shape an operation produces."""

    CREATE = "create"
    UPDATE = "update"
    GET = "get"
    DELETE = "delete"
    LIST = "list"
    META = "meta"
    RELATION = "relation"
    RECORD = "record"
    ROWS = "rows"


@dataclass(frozen=True)
class OperationSpec:
    resource_key: str
    operation_key: str

    def __str__(self) -> str:
        return f"{self.resource_key}.{self.operation_key}"


@dataclass(frozen=True)
class ExecutionItem:
    """One unit of input data: its payload plus per-item parameter overrides."""

    json: Mapping[str, Any] = field(default_factory=dict)
    parameters: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ListQueryOptions:
    """
    Optional list-call options.

    Filter keys keep Bitrix24 operator prefixes (">DATE_CREATE", "!STATUS_ID",
    "%TITLE") exactly as given.
    """

    select: Optional[List[str]] = None
    filter: Optional[Dict[str, Any]] = None
    order: Optional[Dict[str, Any]] = None
    start: Optional[int] = None

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {}
        if self.select is not None:
            body["select"] = list(self.select)
        if self.filter is not None:
            body["filter"] = dict(self.filter)
        if self.order is not None:
            body["order"] = dict(self.order)
        if self.start is not None:
            body["start"] = self.start
        return body


@dataclass(frozen=True)
class ResultRecord:
    """Outcome of one item: either a success payload or an error."""

    item_index: int
    payload: Optional[Any] = None
    error: Optional[BaseException] = None
    item: Optional[Mapping[str, Any]] = None

    @classmethod
    def success(cls, payload: Any, item_index: int) -> "ResultRecord":
        return cls(item_index=item_index, payload=payload)

    @classmethod
    def failure(
        cls,
        error: BaseException,
        item_index: int,
        item: Optional[Mapping[str, Any]] = None,
    ) -> "ResultRecord":
        return cls(item_index=item_index, error=error, item=item)

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        if self.ok:
            return {"_success": True, "item_index": self.item_index, "result": self.payload}

        to_dict = getattr(self.error, "to_dict", None)
        out = to_dict() if callable(to_dict) else {
            "error": str(self.error),
            "exception_type": type(self.error).__name__,
        }
        out["_success"] = False
        out["item_index"] = self.item_index
        if self.item:
            out["item"] = dict(self.item)
        return out
