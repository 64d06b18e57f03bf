"""
Direct method call: generic escape hatch for any Bitrix24 REST method.

- call_method_action: POST a method name with a JSON parameter object
"""

import json
import re
from typing import Any, Dict, Optional

from ..client import ApiClient
from ..errors import Bitrix24Error, MalformedJsonParameter

_METHOD_RE = re.compile(r"^[A-Za-z0-9_]+(\.[A-Za-z0-9_]+)*$")


def call_method_action(
    client: ApiClient,
    method: str,
    params: Optional[str] = None,
) -> Dict[str, Any]:
    """Call ``method`` with ``params`` (JSON object text or empty)."""
    method = (method or "").strip().strip("/")
    if not method:
        return {
            "_success": False,
            "error": "method cannot be empty",
            "hint": "Use a REST method name such as 'crm.deal.list' or 'user.current'",
        }
    if not _METHOD_RE.match(method):
        return {
            "_success": False,
            "error": f"Invalid method name: {method}",
            "hint": "Method names are dot-separated identifiers, e.g. 'tasks.task.get'",
        }

    body: Dict[str, Any] = {}
    try:
        if params:
            try:
                body = json.loads(params)
            except ValueError as e:
                raise MalformedJsonParameter("params", str(e), 0) from e
            if not isinstance(body, dict):
                raise MalformedJsonParameter("params", "expected a JSON object", 0)

        response = client.call(method, body, {}, 0)
    except Bitrix24Error as e:
        return {"_success": False, **e.to_dict(), "method": method}

    return {"_success": True, "method": method, "response": response}
