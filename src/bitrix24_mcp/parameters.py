"""
Per-item parameter extraction.

Parameters come from a configuration source keyed by (name, item index).
Values arrive in three shapes:

- scalars (strings, numbers, booleans),
- JSON text that has to be decoded once at this boundary,
- repeatable groups wrapped as {group_key: [entry, ...]}.

JSON list options are lenient: a malformed ``select`` falls back to comma
splitting, a malformed ``filter`` or ``order`` is dropped. Structured JSON
parameters (``get_json``) are strict and raise MalformedJsonParameter.
"""

import json
import logging
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence

from .errors import MalformedJsonParameter, MissingRequiredParameter
from .models.records import ExecutionItem, ListQueryOptions

logger = logging.getLogger(__name__)

_MISSING = object()


class ParameterSource(Protocol):
    def get_parameter(self, name: str, item_index: int) -> Any:
        """Return the value of ``name`` for an item. Raise KeyError if absent."""
        ...


class ItemParameterSource:
    """Per-item overrides layered over shared node-level parameters."""

    def __init__(self, items: Sequence[ExecutionItem], shared: Optional[Mapping[str, Any]] = None):
        self._items = items
        self._shared = dict(shared or {})

    def get_parameter(self, name: str, item_index: int) -> Any:
        if 0 <= item_index < len(self._items):
            overrides = self._items[item_index].parameters
            if name in overrides:
                return overrides[name]
        return self._shared[name]


# ============================================================================
# Lenient decoders
# ============================================================================

def _clean_fields(values) -> Optional[List[str]]:
    fields = [str(f).strip() for f in values if str(f).strip()]
    return fields or None


def parse_select(raw: Any) -> Optional[List[str]]:
    """Decode a select option: JSON array first, comma-separated text second."""
    if raw is None or raw == "":
        return None
    if isinstance(raw, (list, tuple)):
        return _clean_fields(raw)
    text = str(raw)
    try:
        parsed = json.loads(text)
    except ValueError:
        parsed = None
    if isinstance(parsed, list):
        return _clean_fields(parsed)
    return _clean_fields(text.split(","))


def parse_json_mapping(raw: Any) -> Optional[Dict[str, Any]]:
    """Decode a JSON object option; anything unusable yields None."""
    if raw is None or raw == "":
        return None
    if isinstance(raw, Mapping):
        return dict(raw)
    try:
        parsed = json.loads(str(raw))
    except ValueError:
        logger.debug("Dropping malformed JSON option: %r", raw)
        return None
    if not isinstance(parsed, dict):
        return None
    return parsed


def parse_start(raw: Any) -> Optional[int]:
    if raw is None or raw == "" or isinstance(raw, bool):
        return None
    try:
        start = int(raw)
    except (TypeError, ValueError):
        return None
    return start if start >= 0 else None


# ============================================================================
# Extractor
# ============================================================================

class ParameterExtractor:
    """Typed reads over a ParameterSource."""

    def __init__(self, source: ParameterSource):
        self.source = source

    def get(self, item_index: int, name: str, default: Any = _MISSING) -> Any:
        try:
            return self.source.get_parameter(name, item_index)
        except KeyError:
            if default is _MISSING:
                raise MissingRequiredParameter(name, item_index) from None
            return default

    def get_str(self, item_index: int, name: str, default: Any = _MISSING) -> Optional[str]:
        value = self.get(item_index, name, default)
        if value is None:
            return None
        return str(value)

    def require_str(self, item_index: int, name: str) -> str:
        """Like get_str, but an empty value counts as missing."""
        value = self.get_str(item_index, name, None)
        if value is None or not value.strip():
            raise MissingRequiredParameter(name, item_index)
        return value.strip()

    def get_group_items(self, item_index: int, name: str, group_key: str) -> List[Dict[str, Any]]:
        group = self.get(item_index, name, {})
        if not isinstance(group, Mapping):
            return []
        entries = group.get(group_key)
        if not isinstance(entries, list):
            return []
        return [entry for entry in entries if isinstance(entry, Mapping)]

    def get_field_collection(
        self,
        item_index: int,
        name: str = "fields",
        group_key: str = "fieldItems",
    ) -> Dict[str, Any]:
        """Flatten a {fieldName, fieldValue} group. Later names win."""
        fields: Dict[str, Any] = {}
        for entry in self.get_group_items(item_index, name, group_key):
            field_name = entry.get("fieldName")
            if not field_name or "fieldValue" not in entry:
                continue
            fields[str(field_name)] = entry["fieldValue"]
        return fields

    def get_value_list(
        self,
        item_index: int,
        name: str,
        group_key: str,
        default_type: str = "WORK",
    ) -> List[Dict[str, Any]]:
        """Multi-value fields (PHONE, EMAIL) as [{VALUE, VALUE_TYPE}]."""
        values = []
        for entry in self.get_group_items(item_index, name, group_key):
            if entry.get("VALUE") in (None, ""):
                continue
            values.append({
                "VALUE": entry["VALUE"],
                "VALUE_TYPE": entry.get("VALUE_TYPE") or default_type,
            })
        return values

    def get_json(self, item_index: int, name: str, default: Any = _MISSING) -> Any:
        value = self.get(item_index, name, default)
        if not isinstance(value, (str, bytes)):
            return value
        try:
            return json.loads(value)
        except ValueError as e:
            raise MalformedJsonParameter(name, str(e), item_index) from e

    def get_list_options(self, item_index: int, name: str = "crmOptions") -> ListQueryOptions:
        options = self.get(item_index, name, {})
        if not isinstance(options, Mapping):
            options = {}
        return ListQueryOptions(
            select=parse_select(options.get("select")),
            filter=parse_json_mapping(options.get("filter")),
            order=parse_json_mapping(options.get("order")),
            start=parse_start(options.get("start")),
        )
