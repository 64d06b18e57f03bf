"""
CRM MCP Tools for Bitrix24.

Covers 8 CRM entity types (lead, deal, contact, company, quote, invoice,
product, activity) with one consolidated action router:
- create / update / get / delete: single-record operations
- list / getAll: filtered listing with select, filter, order and start
- getFields and reference lists (user fields, statuses, currencies, catalogs)
- contact <-> company links and deal product rows
"""

from typing import Any, Dict, List, Mapping, Optional

from ..builders import get_builder_for_family
from ..client import ApiClient
from ..errors import Bitrix24Error
from ..executor import BatchExecutor
from ..models.records import BatchMode, ExecutionItem
from ..parameters import ItemParameterSource, ParameterExtractor
from ..registry import EndpointRegistry


# ============================================================================
# Endpoint Tables
# ============================================================================

def _crud(entity: str) -> Dict[str, str]:
    return {
        "create": f"crm.{entity}.add",
        "get": f"crm.{entity}.get",
        "list": f"crm.{entity}.list",
        "getAll": f"crm.{entity}.list",
        "update": f"crm.{entity}.update",
        "delete": f"crm.{entity}.delete",
        "getFields": f"crm.{entity}.fields",
    }


CRM_ENDPOINTS: Dict[str, Dict[str, str]] = {
    "lead": _crud("lead"),
    "deal": {
        **_crud("deal"),
        "getProducts": "crm.deal.productrows.get",
        "setProducts": "crm.deal.productrows.set",
    },
    "contact": {
        **_crud("contact"),
        "addToCompany": "crm.contact.company.add",
        "removeFromCompany": "crm.contact.company.delete",
        "getCompanies": "crm.contact.company.items.get",
        "setCompany": "crm.contact.company.items.set",
    },
    "company": _crud("company"),
    "quote": _crud("quote"),
    "invoice": _crud("invoice"),
    "product": {
        **_crud("product"),
        "getSections": "crm.productsection.list",
        "getProperties": "crm.product.property.list",
        "getPropertySettings": "crm.product.property.settings.get",
    },
    "activity": _crud("activity"),
}

# Operations that work for every entity type
CRM_COMMON_ENDPOINTS: Dict[str, str] = {
    "getUserFields": "crm.userfield.list",
    "getStatus": "crm.status.list",
    "getCurrency": "crm.currency.list",
    "getCatalog": "crm.catalog.list",
}


def build_crm_registry() -> EndpointRegistry:
    return EndpointRegistry(CRM_ENDPOINTS, CRM_COMMON_ENDPOINTS)


# ============================================================================
# Helpers
# ============================================================================

def _normalize_parameters(params: Mapping[str, Any]) -> Dict[str, Any]:
    """Accept plain shapes for the repeatable groups.

    fields={"TITLE": "X"} becomes {"fieldItems": [{"fieldName": "TITLE", ...}]},
    phoneFields=[...] becomes {"phoneItems": [...]}, same for emailFields.
    Already-wrapped groups pass through untouched.
    """
    out = dict(params)

    fields = out.get("fields")
    if isinstance(fields, Mapping) and "fieldItems" not in fields:
        out["fields"] = {
            "fieldItems": [{"fieldName": k, "fieldValue": v} for k, v in fields.items()]
        }

    for name, group_key in (("phoneFields", "phoneItems"), ("emailFields", "emailItems")):
        value = out.get(name)
        if isinstance(value, list):
            out[name] = {group_key: value}

    return out


def _build_items(items: Optional[List[Any]]) -> List[ExecutionItem]:
    if not items:
        return [ExecutionItem()]
    built = []
    for entry in items:
        built.append(ExecutionItem(json=dict(entry), parameters=_normalize_parameters(entry)))
    return built


# ============================================================================
# Action Router
# ============================================================================

def manage_crm_action(
    client: ApiClient,
    entity_type: str,
    operation: str,
    config_data: Optional[Dict[str, Any]] = None,
    items: Optional[List[Dict[str, Any]]] = None,
    record_id: Optional[str] = None,
    continue_on_fail: bool = False,
    registry: Optional[EndpointRegistry] = None,
) -> Dict[str, Any]:
    """
    Run a CRM operation over one or more items.

    Args:
        client: Bitrix24 API client
        entity_type: lead, deal, contact, company, quote, invoice, product, activity
        operation: create, get, list, getAll, update, delete, getFields, ...
        config_data: Node-level parameters shared by all items
        items: Optional per-item parameter overrides (one call per entry)
        record_id: Record ID for get, update, delete and record sub-operations
        continue_on_fail: Collect per-item errors instead of aborting
        registry: Endpoint registry (defaults to the CRM tables)
    """
    registry = registry or build_crm_registry()

    if entity_type not in registry.resources:
        return {
            "_success": False,
            "error": f"Unknown entity type: {entity_type}",
            "valid_entity_types": registry.resources,
        }

    for index, entry in enumerate(items or []):
        if not isinstance(entry, Mapping):
            return {
                "_success": False,
                "error": f"items[{index}] must be a JSON object",
                "hint": 'Pass items as a JSON array of objects, e.g. [{"recordId": "1"}, {"recordId": "2"}]',
            }

    shared = _normalize_parameters(config_data or {})
    shared["entityType"] = entity_type
    shared["operation"] = operation
    if record_id is not None:
        shared["recordId"] = record_id

    batch = _build_items(items)
    parameters = ParameterExtractor(ItemParameterSource(batch, shared))
    builder = get_builder_for_family("crm")(parameters)
    executor = BatchExecutor(
        registry, builder, client, mode=BatchMode.from_flag(continue_on_fail)
    )

    try:
        records = executor.process(batch)
    except Bitrix24Error as e:
        return {
            "_success": False,
            **e.to_dict(),
            "entity_type": entity_type,
            "operation": operation,
        }
    except Exception as e:
        return {
            "_success": False,
            "error": f"Operation '{operation}' failed: {str(e)}",
            "exception_type": type(e).__name__,
        }

    results = [r.to_dict() for r in records]
    failed = sum(1 for r in records if not r.ok)
    return {
        "_success": True,
        "entity_type": entity_type,
        "operation": operation,
        "results": results,
        "count": len(results),
        "failed_count": failed,
    }


def list_crm_operations_action(
    entity_type: Optional[str] = None,
    registry: Optional[EndpointRegistry] = None,
) -> Dict[str, Any]:
    """Describe which operations map to which REST methods."""
    registry = registry or build_crm_registry()

    if entity_type is None:
        return {
            "_success": True,
            "entity_types": {r: registry.operations_for(r) for r in registry.resources},
            "common_operations": dict(registry.common_operations),
        }

    if entity_type not in registry.resources:
        return {
            "_success": False,
            "error": f"Unknown entity type: {entity_type}",
            "valid_entity_types": registry.resources,
        }

    return {
        "_success": True,
        "entity_type": entity_type,
        "operations": registry.operations_for(entity_type),
    }
