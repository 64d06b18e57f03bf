"""
Batch Executor

Runs one (resource, operation) dispatch per input item, strictly in order:
- resolves the REST method from the registry
- builds the request body
- calls the API client
- records a ResultRecord per item

The batch mode is fixed per executor. ABORT_ON_ERROR re-raises the first
failure (stamped with its item index) and never touches later items.
COLLECT_ERRORS turns each failure into an error record and keeps going.
"""

import logging
from typing import Any, Callable, List, Mapping, Optional, Sequence

from .builders.base_builder import RequestBuilder
from .client import ApiClient
from .errors import Bitrix24Error, ItemExecutionError
from .models.records import BatchMode, ExecutionItem, OperationSpec, ResultRecord
from .registry import EndpointRegistry

logger = logging.getLogger(__name__)

ErrorReporter = Callable[[BaseException, int, Optional[Mapping[str, Any]]], ResultRecord]


def report_error(
    error: BaseException,
    item_index: int,
    item: Optional[Mapping[str, Any]] = None,
) -> ResultRecord:
    """Default error reporter: keep the error and the originating item."""
    return ResultRecord.failure(error, item_index, item)


class BatchExecutor:
    """Sequential per-item dispatcher."""

    def __init__(
        self,
        registry: EndpointRegistry,
        builder: RequestBuilder,
        client: ApiClient,
        mode: BatchMode = BatchMode.ABORT_ON_ERROR,
        resource_parameter: str = "entityType",
        operation_parameter: str = "operation",
        reporter: ErrorReporter = report_error,
    ):
        self.registry = registry
        self.builder = builder
        self.client = client
        self.mode = BatchMode(mode)
        self.resource_parameter = resource_parameter
        self.operation_parameter = operation_parameter
        self.reporter = reporter

    def process_item(self, item_index: int) -> Any:
        parameters = self.builder.parameters
        resource_key = parameters.require_str(item_index, self.resource_parameter)
        operation_key = parameters.require_str(item_index, self.operation_parameter)

        operation = OperationSpec(resource_key, operation_key)
        endpoint = self.registry.resolve_operation(operation, item_index)
        body = self.builder.build(operation_key, resource_key, item_index)

        logger.debug("Item %d: %s -> %s", item_index, operation, endpoint)
        return self.client.call(endpoint, body, {}, item_index)

    def process(self, items: Sequence[ExecutionItem]) -> List[ResultRecord]:
        results: List[ResultRecord] = []

        for index, item in enumerate(items):
            try:
                payload = self.process_item(index)
            except Exception as e:
                if self.mode is BatchMode.COLLECT_ERRORS:
                    logger.warning("Item %d failed: %s", index, e)
                    results.append(self.reporter(e, index, item.json))
                    continue
                if isinstance(e, Bitrix24Error):
                    if e.item_index is None:
                        e.item_index = index
                    raise
                raise ItemExecutionError(f"Item {index} failed: {e}", index) from e

            results.append(ResultRecord.success(payload, index))

        failed = sum(1 for r in results if not r.ok)
        logger.info("Batch finished: %d items, %d failed", len(results), failed)
        return results
