"""
Base request builder for Bitrix24 REST calls.

A builder turns the parameters of one input item into the JSON body of a
REST call. Concrete builders declare which body shape each operation
produces and implement the shapes; the dispatch itself lives here.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping

from ..errors import UnsupportedOperation
from ..models.records import OperationClass
from ..parameters import ParameterExtractor


class RequestBuilder(ABC):
    """
    Abstract base class for all request builders.

    Subclasses provide OPERATION_CLASSES (operation key -> OperationClass)
    and a build method for every class they list.
    """

    OPERATION_CLASSES: Mapping[str, OperationClass] = {}

    def __init__(self, parameters: ParameterExtractor):
        self.parameters = parameters

    def operation_class(self, operation_key: str, item_index: int) -> OperationClass:
        op_class = self.OPERATION_CLASSES.get(operation_key)
        if op_class is None:
            raise UnsupportedOperation(operation_key, item_index)
        return op_class

    def build(self, operation_key: str, resource_key: str, item_index: int) -> Dict[str, Any]:
        """
        Build the request body for one item.

        Raises:
            UnsupportedOperation: operation has no body shape
            MissingRequiredParameter: a required value is absent
            MalformedJsonParameter: a structured JSON value cannot be decoded
        """
        op_class = self.operation_class(operation_key, item_index)
        handler = getattr(self, f"build_{op_class.value}", None)
        if handler is None:
            raise UnsupportedOperation(operation_key, item_index)
        return handler(operation_key, resource_key, item_index)

    @abstractmethod
    def build_create(self, operation_key: str, resource_key: str, item_index: int) -> Dict[str, Any]:
        pass

    def build_meta(self, operation_key: str, resource_key: str, item_index: int) -> Dict[str, Any]:
        return {}
