"""
CRM request builder.

One builder serves every CRM entity (lead, deal, contact, company, quote,
invoice, product, activity). Entity-specific behavior is limited to small
conditional additions, e.g. the deal pipeline on create.
"""

from typing import Any, Dict, Mapping

from ..errors import MalformedJsonParameter
from ..models.records import OperationClass
from .base_builder import RequestBuilder


CRM_OPERATION_CLASSES: Mapping[str, OperationClass] = {
    "create": OperationClass.CREATE,
    "update": OperationClass.UPDATE,
    "get": OperationClass.GET,
    "delete": OperationClass.DELETE,
    "list": OperationClass.LIST,
    "getAll": OperationClass.LIST,
    # Field discovery and reference lists take no arguments
    "getFields": OperationClass.META,
    "getUserFields": OperationClass.META,
    "getStatus": OperationClass.META,
    "getCurrency": OperationClass.META,
    "getCatalog": OperationClass.META,
    "getSections": OperationClass.META,
    "getProperties": OperationClass.META,
    "getPropertySettings": OperationClass.META,
    # Contact <-> company links
    "addToCompany": OperationClass.RELATION,
    "removeFromCompany": OperationClass.RELATION,
    "getCompanies": OperationClass.RECORD,
    "setCompany": OperationClass.RECORD,
    # Deal product rows
    "getProducts": OperationClass.RECORD,
    "setProducts": OperationClass.ROWS,
}

# Multi-value fields: body key -> (parameter name, group key)
SPECIAL_VALUE_FIELDS = {
    "PHONE": ("phoneFields", "phoneItems"),
    "EMAIL": ("emailFields", "emailItems"),
}

RELATION_KEYS = {
    "addToCompany": ("companyId", "COMPANY_ID"),
    "removeFromCompany": ("companyId", "COMPANY_ID"),
}


class CrmRequestBuilder(RequestBuilder):
    """Builds request bodies for crm.* REST methods."""

    OPERATION_CLASSES = CRM_OPERATION_CLASSES

    def _record_id(self, item_index: int) -> str:
        return self.parameters.require_str(item_index, "recordId")

    def build_fields(self, operation_key: str, resource_key: str, item_index: int) -> Dict[str, Any]:
        """Merge the regular field collection with the special fields."""
        fields = self.parameters.get_field_collection(item_index, "fields", "fieldItems")

        if resource_key == "deal" and operation_key == "create":
            category_id = self.parameters.get(item_index, "categoryId", None)
            if category_id is not None and category_id != "":
                fields["CATEGORY_ID"] = category_id

        # Special fields overwrite same-named regular fields
        for key, (param_name, group_key) in SPECIAL_VALUE_FIELDS.items():
            values = self.parameters.get_value_list(item_index, param_name, group_key)
            if values:
                fields[key] = values

        return fields

    def build_create(self, operation_key: str, resource_key: str, item_index: int) -> Dict[str, Any]:
        return {"fields": self.build_fields(operation_key, resource_key, item_index)}

    def build_update(self, operation_key: str, resource_key: str, item_index: int) -> Dict[str, Any]:
        record_id = self._record_id(item_index)
        return {
            "id": record_id,
            "fields": self.build_fields(operation_key, resource_key, item_index),
        }

    def build_get(self, operation_key: str, resource_key: str, item_index: int) -> Dict[str, Any]:
        return {"id": self._record_id(item_index)}

    build_delete = build_get
    build_record = build_get

    def build_list(self, operation_key: str, resource_key: str, item_index: int) -> Dict[str, Any]:
        return self.parameters.get_list_options(item_index, "crmOptions").to_body()

    def build_relation(self, operation_key: str, resource_key: str, item_index: int) -> Dict[str, Any]:
        param_name, relation_key = RELATION_KEYS[operation_key]
        return {
            "id": self._record_id(item_index),
            "fields": {relation_key: self.parameters.require_str(item_index, param_name)},
        }

    def build_rows(self, operation_key: str, resource_key: str, item_index: int) -> Dict[str, Any]:
        record_id = self._record_id(item_index)
        rows = self.parameters.get_json(item_index, "products")
        if not isinstance(rows, list):
            raise MalformedJsonParameter(
                "products", f"expected a JSON array, got {type(rows).__name__}", item_index
            )
        return {"id": record_id, "rows": rows}
