"""
Bitrix24 Request Builders.

This package turns per-item parameters into REST request bodies.

Modules:
    base_builder: Abstract builder with operation-class dispatch
    crm_builder: Builder shared by all CRM entities

Usage:
    from bitrix24_mcp.builders import CrmRequestBuilder
    from bitrix24_mcp.parameters import ParameterExtractor, ItemParameterSource

    builder = CrmRequestBuilder(ParameterExtractor(source))
    body = builder.build("create", "deal", item_index=0)
"""

from .base_builder import RequestBuilder

from .crm_builder import (
    CRM_OPERATION_CLASSES,
    SPECIAL_VALUE_FIELDS,
    CrmRequestBuilder,
)

# Registry of resource-family builders
# Maps family name -> builder class
FAMILY_BUILDERS = {
    "crm": CrmRequestBuilder,
}


def get_builder_for_family(family: str) -> type:
    """
    Get the builder class for a resource family.

    Raises:
        ValueError: If the family is not supported
    """
    builder_class = FAMILY_BUILDERS.get(family.lower())
    if not builder_class:
        supported = ", ".join(FAMILY_BUILDERS.keys())
        raise ValueError(
            f"Unsupported resource family: {family}. "
            f"Supported families: {supported}"
        )
    return builder_class


__all__ = [
    "RequestBuilder",
    "CrmRequestBuilder",
    "CRM_OPERATION_CLASSES",
    "SPECIAL_VALUE_FIELDS",
    "FAMILY_BUILDERS",
    "get_builder_for_family",
]
