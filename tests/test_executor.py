"""Tests for sequential batch execution."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

import pytest
from bitrix24_mcp.builders import CrmRequestBuilder
from bitrix24_mcp.categories.crm import build_crm_registry
from bitrix24_mcp.errors import (
    EndpointNotFound,
    ItemExecutionError,
    MalformedJsonParameter,
    RemoteApiError,
)
from bitrix24_mcp.executor import BatchExecutor
from bitrix24_mcp.models.records import BatchMode, ExecutionItem, ResultRecord
from bitrix24_mcp.parameters import ItemParameterSource, ParameterExtractor


class RecordingClient:
    """Fake API client: records calls, fails for selected item indexes."""

    def __init__(self, fail_on=(), exc=None):
        self.calls = []
        self.fail_on = set(fail_on)
        self.exc = exc

    def call(self, endpoint, body=None, query=None, item_index=0):
        self.calls.append((endpoint, body, query, item_index))
        if item_index in self.fail_on:
            if self.exc is not None:
                raise self.exc
            raise RemoteApiError('ERROR_CORE', 'boom', status=400, endpoint=endpoint, item_index=item_index)
        return {'result': {'ID': str(100 + item_index)}}


def make_executor(client, mode, shared=None, items=None):
    batch = [ExecutionItem(json={'n': i}, parameters=p) for i, p in enumerate(items or [{}])]
    shared = {'entityType': 'lead', 'operation': 'get', **(shared or {})}
    builder = CrmRequestBuilder(ParameterExtractor(ItemParameterSource(batch, shared)))
    return BatchExecutor(build_crm_registry(), builder, client, mode=mode), batch


THREE_ITEMS = [{'recordId': '1'}, {'recordId': '2'}, {'recordId': '3'}]


class TestCollectMode:
    """Failures become records; every item gets exactly one record."""

    def test_middle_failure_collected(self):
        client = RecordingClient(fail_on={1})
        executor, batch = make_executor(client, BatchMode.COLLECT_ERRORS, items=THREE_ITEMS)
        results = executor.process(batch)

        assert len(results) == 3
        assert [r.item_index for r in results] == [0, 1, 2]
        assert [r.ok for r in results] == [True, False, True]
        assert isinstance(results[1].error, RemoteApiError)
        assert results[0].payload == {'result': {'ID': '100'}}
        assert results[2].payload == {'result': {'ID': '102'}}

    def test_calls_are_sequential_and_in_order(self):
        client = RecordingClient(fail_on={1})
        executor, batch = make_executor(client, BatchMode.COLLECT_ERRORS, items=THREE_ITEMS)
        executor.process(batch)
        assert client.calls == [
            ('crm.lead.get', {'id': '1'}, {}, 0),
            ('crm.lead.get', {'id': '2'}, {}, 1),
            ('crm.lead.get', {'id': '3'}, {}, 2),
        ]

    def test_endpoint_miss_is_per_item(self):
        client = RecordingClient()
        items = [{'recordId': '1'}, {'operation': 'teleport'}, {'recordId': '3'}]
        executor, batch = make_executor(client, BatchMode.COLLECT_ERRORS, items=items)
        results = executor.process(batch)
        assert [r.ok for r in results] == [True, False, True]
        assert isinstance(results[1].error, EndpointNotFound)
        assert len(client.calls) == 2

    def test_error_record_keeps_item(self):
        client = RecordingClient(fail_on={0})
        executor, batch = make_executor(client, BatchMode.COLLECT_ERRORS, items=[{'recordId': '1'}])
        record = executor.process(batch)[0].to_dict()
        assert record['_success'] is False
        assert record['item_index'] == 0
        assert record['item'] == {'n': 0}
        assert record['exception_type'] == 'RemoteApiError'

    def test_custom_reporter(self):
        def reporter(error, item_index, item):
            return ResultRecord.failure(RuntimeError(f'wrapped: {error}'), item_index)

        client = RecordingClient(fail_on={0})
        executor, batch = make_executor(client, BatchMode.COLLECT_ERRORS, items=[{'recordId': '1'}])
        executor.reporter = reporter
        results = executor.process(batch)
        assert str(results[0].error).startswith('wrapped:')


class TestAbortMode:
    """The first failure propagates; later items are never attempted."""

    def test_middle_failure_aborts(self):
        client = RecordingClient(fail_on={1})
        executor, batch = make_executor(client, BatchMode.ABORT_ON_ERROR, items=THREE_ITEMS)
        with pytest.raises(RemoteApiError) as exc_info:
            executor.process(batch)
        assert exc_info.value.item_index == 1
        assert [call[3] for call in client.calls] == [0, 1]

    def test_builder_error_stamped_with_index(self):
        client = RecordingClient()
        items = [{'recordId': '1'}, {'operation': 'setProducts', 'entityType': 'deal',
                                     'recordId': '9', 'products': 'not json'}]
        executor, batch = make_executor(client, BatchMode.ABORT_ON_ERROR, items=items)
        with pytest.raises(MalformedJsonParameter) as exc_info:
            executor.process(batch)
        assert exc_info.value.item_index == 1
        assert len(client.calls) == 1

    def test_foreign_exception_wrapped(self):
        client = RecordingClient(fail_on={0}, exc=KeyError('result'))
        executor, batch = make_executor(client, BatchMode.ABORT_ON_ERROR, items=[{'recordId': '1'}])
        with pytest.raises(ItemExecutionError) as exc_info:
            executor.process(batch)
        assert exc_info.value.item_index == 0
        assert isinstance(exc_info.value.__cause__, KeyError)

    def test_all_success(self):
        client = RecordingClient()
        executor, batch = make_executor(client, BatchMode.ABORT_ON_ERROR, items=THREE_ITEMS)
        results = executor.process(batch)
        assert all(r.ok for r in results)
        assert len(results) == 3


class TestBatchMode:

    def test_from_flag(self):
        assert BatchMode.from_flag(True) is BatchMode.COLLECT_ERRORS
        assert BatchMode.from_flag(False) is BatchMode.ABORT_ON_ERROR

    def test_mode_accepts_value(self):
        executor, _ = make_executor(RecordingClient(), 'collect')
        assert executor.mode is BatchMode.COLLECT_ERRORS
