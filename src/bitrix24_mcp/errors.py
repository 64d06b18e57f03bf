"""
Error taxonomy for Bitrix24 request dispatch.

Every error carries the index of the input item it belongs to, so a batch
caller can correlate a failure with the item that caused it.
"""

from typing import Any, Dict, Optional

from .models.records import OperationSpec


class Bitrix24Error(Exception):
    """Base class for dispatch failures."""

    def __init__(self, message: str, item_index: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.item_index = item_index

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "exception_type": type(self).__name__,
            "item_index": self.item_index,
        }


class EndpointNotFound(Bitrix24Error):
    """Raised when a (resource, operation) pair has no mapped endpoint."""

    def __init__(self, operation: OperationSpec, item_index: Optional[int] = None):
        super().__init__(f"Endpoint not found for {operation}", item_index)
        self.operation = operation
        self.resource_key = operation.resource_key
        self.operation_key = operation.operation_key


class UnsupportedOperation(Bitrix24Error):
    """Raised when the request builder has no body shape for an operation."""

    def __init__(self, operation_key: str, item_index: Optional[int] = None):
        super().__init__(f"Unsupported operation type: {operation_key}", item_index)
        self.operation_key = operation_key


class MissingRequiredParameter(Bitrix24Error):
    """Raised when a required parameter is absent or empty."""

    def __init__(self, name: str, item_index: Optional[int] = None):
        super().__init__(f"Missing required parameter: {name}", item_index)
        self.name = name


class MalformedJsonParameter(Bitrix24Error):
    """Raised when a structured JSON parameter cannot be decoded."""

    def __init__(self, name: str, detail: str, item_index: Optional[int] = None):
        super().__init__(f"Invalid JSON in {name} parameter: {detail}", item_index)
        self.name = name
        self.detail = detail


class RemoteApiError(Bitrix24Error):
    """Raised by the API client on an error response or transport failure."""

    def __init__(
        self,
        error_code: str,
        description: str,
        status: Optional[int] = None,
        endpoint: Optional[str] = None,
        response: Optional[Any] = None,
        item_index: Optional[int] = None,
    ):
        super().__init__(f"{error_code}: {description}", item_index)
        self.error_code = error_code
        self.description = description
        self.status = status
        self.endpoint = endpoint
        self.response = response

    def to_dict(self) -> Dict[str, Any]:
        out = super().to_dict()
        out.update({
            "error_code": self.error_code,
            "error_description": self.description,
            "status": self.status,
            "endpoint": self.endpoint,
        })
        return out


class ItemExecutionError(Bitrix24Error):
    """Wraps an unexpected exception raised while processing one item."""
