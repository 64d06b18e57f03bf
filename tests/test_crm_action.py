"""Tests for the CRM and direct method action routers."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from bitrix24_mcp.categories.crm import list_crm_operations_action, manage_crm_action
from bitrix24_mcp.categories.direct_api import call_method_action
from bitrix24_mcp.errors import RemoteApiError


class RecordingClient:
    """Fake API client: records calls, fails for selected item indexes."""

    def __init__(self, fail_on=()):
        self.calls = []
        self.fail_on = set(fail_on)

    def call(self, endpoint, body=None, query=None, item_index=0):
        self.calls.append((endpoint, body))
        if item_index in self.fail_on:
            raise RemoteApiError('ERROR_CORE', 'boom', status=400, endpoint=endpoint, item_index=item_index)
        return {'result': True}


class TestManageCrm:
    """End-to-end routing through the executor."""

    def test_create_deal_with_plain_fields(self):
        client = RecordingClient()
        result = manage_crm_action(
            client, 'deal', 'create',
            config_data={'fields': {'TITLE': 'Deal A'}, 'categoryId': '5'},
        )
        assert result['_success'] is True
        assert result['count'] == 1
        assert client.calls == [
            ('crm.deal.add', {'fields': {'TITLE': 'Deal A', 'CATEGORY_ID': '5'}}),
        ]

    def test_get_lead(self):
        client = RecordingClient()
        result = manage_crm_action(client, 'lead', 'get', record_id='42')
        assert client.calls == [('crm.lead.get', {'id': '42'})]
        assert result['results'] == [{'_success': True, 'item_index': 0, 'result': {'result': True}}]

    def test_phone_list_shorthand(self):
        client = RecordingClient()
        manage_crm_action(
            client, 'contact', 'create',
            config_data={'fields': {'NAME': 'Ann', 'PHONE': 'x'}, 'phoneFields': [{'VALUE': '+1'}]},
        )
        assert client.calls[0][1] == {
            'fields': {'NAME': 'Ann', 'PHONE': [{'VALUE': '+1', 'VALUE_TYPE': 'WORK'}]}
        }

    def test_batch_continue_on_fail(self):
        client = RecordingClient(fail_on={1})
        result = manage_crm_action(
            client, 'lead', 'get',
            items=[{'recordId': '1'}, {'recordId': '2'}, {'recordId': '3'}],
            continue_on_fail=True,
        )
        assert result['_success'] is True
        assert result['count'] == 3
        assert result['failed_count'] == 1
        assert [r['_success'] for r in result['results']] == [True, False, True]
        assert result['results'][1]['item'] == {'recordId': '2'}

    def test_batch_abort_reports_failing_item(self):
        client = RecordingClient(fail_on={1})
        result = manage_crm_action(
            client, 'lead', 'get',
            items=[{'recordId': '1'}, {'recordId': '2'}, {'recordId': '3'}],
        )
        assert result['_success'] is False
        assert result['item_index'] == 1
        assert result['exception_type'] == 'RemoteApiError'
        assert len(client.calls) == 2

    def test_non_object_items_rejected_before_any_call(self):
        client = RecordingClient()
        result = manage_crm_action(
            client, 'deal', 'create',
            config_data={'fields': {'TITLE': 'X'}},
            items=[{'fields': {'TITLE': 'Y'}}, 'oops', 7],
        )
        assert result['_success'] is False
        assert result['error'] == 'items[1] must be a JSON object'
        assert 'hint' in result
        assert client.calls == []

    def test_unknown_entity_type(self):
        result = manage_crm_action(RecordingClient(), 'spaceship', 'get', record_id='1')
        assert result['_success'] is False
        assert 'lead' in result['valid_entity_types']

    def test_unknown_operation(self):
        result = manage_crm_action(RecordingClient(), 'lead', 'teleport')
        assert result['_success'] is False
        assert result['exception_type'] == 'EndpointNotFound'

    def test_list_options(self):
        client = RecordingClient()
        manage_crm_action(
            client, 'deal', 'list',
            config_data={'crmOptions': {'select': '["ID","TITLE"]', 'filter': '{invalid'}},
        )
        assert client.calls == [('crm.deal.list', {'select': ['ID', 'TITLE']})]


class TestListOperations:

    def test_all(self):
        result = list_crm_operations_action()
        assert result['_success'] is True
        assert result['entity_types']['deal']['setProducts'] == 'crm.deal.productrows.set'
        assert result['common_operations']['getCurrency'] == 'crm.currency.list'

    def test_single(self):
        result = list_crm_operations_action('contact')
        assert result['operations']['addToCompany'] == 'crm.contact.company.add'

    def test_unknown(self):
        assert list_crm_operations_action('spaceship')['_success'] is False


class TestCallMethod:

    def test_call(self):
        client = RecordingClient()
        result = call_method_action(client, 'user.current')
        assert result['_success'] is True
        assert client.calls == [('user.current', {})]

    def test_params(self):
        client = RecordingClient()
        call_method_action(client, 'tasks.task.get', '{"taskId": 5}')
        assert client.calls == [('tasks.task.get', {'taskId': 5})]

    def test_invalid_json_params(self):
        result = call_method_action(RecordingClient(), 'tasks.task.get', '{taskId')
        assert result['_success'] is False
        assert result['exception_type'] == 'MalformedJsonParameter'

    def test_params_must_be_object(self):
        result = call_method_action(RecordingClient(), 'tasks.task.get', '[1]')
        assert result['_success'] is False

    def test_empty_method(self):
        assert call_method_action(RecordingClient(), '  ')['_success'] is False

    def test_invalid_method_name(self):
        assert call_method_action(RecordingClient(), 'crm.deal.list?x=1')['_success'] is False

    def test_remote_error(self):
        result = call_method_action(RecordingClient(fail_on={0}), 'crm.deal.list')
        assert result['_success'] is False
        assert result['error_code'] == 'ERROR_CORE'
