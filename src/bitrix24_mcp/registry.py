"""
Endpoint registry: maps a (resource, operation) pair to a Bitrix24 REST method.

A registry is built once from plain tables and is read-only afterwards.
Common operations are looked up before resource-specific ones, so a common
operation resolves for every resource key.
"""

from types import MappingProxyType
from typing import Dict, Iterator, List, Mapping, Optional

from .errors import EndpointNotFound
from .models.records import OperationSpec


class EndpointRegistry:
    """Static lookup of REST method names."""

    def __init__(
        self,
        resources: Mapping[str, Mapping[str, str]],
        common: Optional[Mapping[str, str]] = None,
    ):
        self._resources = MappingProxyType({
            resource: MappingProxyType(dict(operations))
            for resource, operations in resources.items()
        })
        self._common = MappingProxyType(dict(common or {}))

    @property
    def resources(self) -> List[str]:
        return list(self._resources.keys())

    @property
    def common_operations(self) -> Mapping[str, str]:
        return self._common

    def operations_for(self, resource_key: str) -> Dict[str, str]:
        """All operations usable with a resource, common ones included."""
        operations = dict(self._resources.get(resource_key, {}))
        operations.update(self._common)
        return operations

    def resolve(self, resource_key: str, operation_key: str, item_index: Optional[int] = None) -> str:
        return self.resolve_operation(OperationSpec(resource_key, operation_key), item_index)

    def resolve_operation(self, operation: OperationSpec, item_index: Optional[int] = None) -> str:
        endpoint = self._common.get(operation.operation_key)
        if not endpoint:
            endpoint = self._resources.get(operation.resource_key, {}).get(operation.operation_key)
        if not endpoint:
            raise EndpointNotFound(operation, item_index)
        return endpoint

    def has(self, resource_key: str, operation_key: str) -> bool:
        try:
            self.resolve(resource_key, operation_key)
        except EndpointNotFound:
            return False
        return True

    def pairs(self) -> Iterator[OperationSpec]:
        for resource, operations in self._resources.items():
            for operation in operations:
                yield OperationSpec(resource, operation)
            for operation in self._common:
                if operation not in operations:
                    yield OperationSpec(resource, operation)
