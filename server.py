#!/usr/bin/env python3
"""
Bitrix24 MCP Server - FastMCP server for Bitrix24 REST API integration.

Features:
- One consolidated CRM tool (8 entity types, batch items, continue-on-fail)
- Direct REST method calls for anything the CRM tool does not cover
- Inbound webhook transport configured from the environment

Configuration (environment):
- BITRIX24_WEBHOOK_URL      https://<portal>/rest/<user>/<code>/ (required)
- BITRIX24_ACCESS_TOKEN     optional, sent as ?auth= instead of webhook auth
- BITRIX24_TIMEOUT          request timeout in seconds (default 30)
- BITRIX24_CONTINUE_ON_FAIL default for continue_on_fail (default false)
- LOG_LEVEL                 DEBUG, INFO, WARNING or ERROR (default INFO)

All diagnostics go to stderr; stdout is reserved for the stdio transport.
"""

import json
import logging
import sys
from pathlib import Path

from fastmcp import FastMCP

# --- Add src to path ---
src_path = Path(__file__).parent / "src"
if src_path.exists():
    sys.path.insert(0, str(src_path))

from bitrix24_mcp.client import Bitrix24Client, redact_url
from bitrix24_mcp.config import get_settings

settings = get_settings()
# stdout carries the stdio JSON-RPC stream; diagnostics go to stderr
logging.basicConfig(level=getattr(logging, settings.log_level), stream=sys.stderr)

if settings.webhook_url:
    print(f"[INFO] Bitrix24 portal: {redact_url(settings.webhook_url)}", file=sys.stderr)
else:
    print("[WARNING] BITRIX24_WEBHOOK_URL is not set; tool calls will fail until it is configured", file=sys.stderr)

# --- CRM Tools ---
try:
    from bitrix24_mcp.categories.crm import (
        build_crm_registry,
        list_crm_operations_action,
        manage_crm_action,
    )
    crm_registry = build_crm_registry()
    print(f"[INFO] CRM tools loaded successfully ({len(crm_registry.resources)} entity types)", file=sys.stderr)
except ImportError as e:
    print(f"[WARNING] Failed to import CRM tools: {e}", file=sys.stderr)
    manage_crm_action = None

# --- Direct Method Tool ---
try:
    from bitrix24_mcp.categories.direct_api import call_method_action
    print(f"[INFO] Direct method tool loaded successfully", file=sys.stderr)
except ImportError as e:
    print(f"[WARNING] Failed to import direct method tool: {e}", file=sys.stderr)
    call_method_action = None


def get_client() -> Bitrix24Client:
    """Create a client from the configured webhook."""
    if not settings.webhook_url:
        raise ValueError("BITRIX24_WEBHOOK_URL must be set")
    return Bitrix24Client(
        settings.webhook_url,
        access_token=settings.access_token,
        timeout=settings.timeout,
    )


def _parse_json_arg(raw: str, name: str):
    """Parse a JSON tool argument; returns (value, error_response)."""
    if not raw:
        return None, None
    try:
        return json.loads(raw), None
    except json.JSONDecodeError as e:
        return None, {"_success": False, "error": f"Invalid JSON in {name}: {e}"}


# --- Create FastMCP server ---
mcp = FastMCP(
    name="Bitrix24 MCP Server"
)


# --- CRM MCP Tools ---
if manage_crm_action:
    @mcp.tool()
    def manage_crm(
        entity_type: str,
        operation: str,
        record_id: str = None,
        config: str = None,
        items: str = None,
        continue_on_fail: bool = None,
    ):
        """
        Manage Bitrix24 CRM records (leads, deals, contacts, companies, quotes,
        invoices, products, activities) via JSON config.

        Args:
            entity_type: One of: lead, deal, contact, company, quote, invoice, product, activity
            operation: One of: create, get, list, getAll, update, delete, getFields,
                       getUserFields, getStatus, getCurrency, getCatalog, plus
                       contact: addToCompany, removeFromCompany, getCompanies, setCompany
                       deal: getProducts, setProducts
                       product: getSections, getProperties, getPropertySettings
            record_id: Record ID (required for get, update, delete and record sub-operations)
            config: JSON object with operation parameters shared by all items
            items: JSON array of per-item parameter objects; one API call per entry
            continue_on_fail: Record per-item errors and continue instead of stopping
                              at the first failure

        Config examples:
            create deal:
                config='{"fields": {"TITLE": "Deal A", "OPPORTUNITY": 1000},
                         "categoryId": "5"}'
            create contact with phones:
                config='{"fields": {"NAME": "Ann"},
                         "phoneFields": [{"VALUE": "+100200300", "VALUE_TYPE": "MOBILE"}],
                         "emailFields": [{"VALUE": "ann@example.com"}]}'
            list:
                config='{"crmOptions": {"select": "ID,TITLE",
                                        "filter": "{\\">OPPORTUNITY\\": 500}",
                                        "order": "{\\"ID\\": \\"DESC\\"}",
                                        "start": 50}}'
            add contact to company:
                record_id="12", config='{"companyId": "7"}'
            set deal products:
                record_id="42", config='{"products": "[{\\"PRODUCT_ID\\": 1, \\"QUANTITY\\": 2}]"}'
            batch get:
                items='[{"recordId": "1"}, {"recordId": "2"}]'

        Returns:
            Per-item results in input order, or the error of the first failing item
        """
        config_data, error = _parse_json_arg(config, "config")
        if error:
            return error
        items_data, error = _parse_json_arg(items, "items")
        if error:
            return error
        if items_data is not None and not isinstance(items_data, list):
            return {"_success": False, "error": "items must be a JSON array"}
        if continue_on_fail is None:
            continue_on_fail = settings.continue_on_fail

        print(f"[INFO] manage_crm called: entity_type={entity_type}, operation={operation}, "
              f"items={len(items_data) if items_data else 1}", file=sys.stderr)
        try:
            with get_client() as client:
                return manage_crm_action(
                    client,
                    entity_type,
                    operation,
                    config_data=config_data,
                    items=items_data,
                    record_id=record_id,
                    continue_on_fail=continue_on_fail,
                    registry=crm_registry,
                )
        except Exception as e:
            print(f"[ERROR] Failed to {operation} {entity_type}: {e}", file=sys.stderr)
            return {"_success": False, "error": str(e)}

    @mcp.tool(
        annotations={
            "readOnlyHint": True,
        }
    )
    def list_crm_operations(entity_type: str = None):
        """
        List CRM operations and the REST methods they call.

        Args:
            entity_type: Optional entity type to narrow the listing

        Returns:
            Operation -> REST method mapping per entity type
        """
        return list_crm_operations_action(entity_type, registry=crm_registry)

    print("[INFO] CRM tools registered successfully (manage_crm, list_crm_operations)", file=sys.stderr)


# --- Direct Method MCP Tool ---
if call_method_action:
    @mcp.tool(
        annotations={
            "openWorldHint": True,
        }
    )
    def call_bitrix24_method(method: str, params: str = None):
        """
        Call any Bitrix24 REST method directly.

        Args:
            method: REST method name, e.g. 'user.current', 'tasks.task.list'
            params: JSON object with method parameters, e.g. '{"filter": {"ID": 1}}'

        Returns:
            Raw API response or error details
        """
        print(f"[INFO] call_bitrix24_method called: method={method}", file=sys.stderr)
        try:
            with get_client() as client:
                return call_method_action(client, method, params)
        except Exception as e:
            print(f"[ERROR] Direct call to {method} failed: {e}", file=sys.stderr)
            return {"_success": False, "error": str(e)}

    print("[INFO] Direct method tool registered successfully", file=sys.stderr)


if __name__ == "__main__":
    # Print startup info
    print("\n" + "=" * 60, file=sys.stderr)
    print(" Bitrix24 MCP Server", file=sys.stderr)
    print("=" * 60, file=sys.stderr)
    print(f"Portal:        {redact_url(settings.webhook_url) if settings.webhook_url else '(not configured)'}", file=sys.stderr)
    print(f"Auth Mode:     {'access token' if settings.access_token else 'webhook'}", file=sys.stderr)
    print(f"Timeout:       {settings.timeout}s", file=sys.stderr)
    print("=" * 60, file=sys.stderr)
    print("\n MCP Tools available:", file=sys.stderr)
    if manage_crm_action:
        print("   manage_crm - CRM records (create, get, list, update, delete, ...)", file=sys.stderr)
        print("   list_crm_operations - Operation -> REST method reference", file=sys.stderr)
    if call_method_action:
        print("   call_bitrix24_method - Direct REST method call", file=sys.stderr)
    print("=" * 60 + "\n", file=sys.stderr)

    # Run in stdio mode
    mcp.run(transport="stdio")
