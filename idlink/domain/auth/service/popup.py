"""Popup response rendering for the OAuth popup flow.

The provider callback is loaded in a popup window. Its response posts the
outcome to the window that opened it and closes itself. The target origin
is always the one captured in the signed flow token at flow start, never a
value read from the callback request.
"""

import json
from collections.abc import Mapping
from typing import Any

WILDCARD_ORIGIN = "*"

_SCRIPT_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}

_TEMPLATE = """<!DOCTYPE html>
<html>
  <head>
    <script>
      window.opener.postMessage({payload}, {origin});
      window.close();
    </script>
  </head>
</html>"""


def _script_json(value: Any) -> str:
    """JSON-encode a value so it cannot terminate the enclosing <script>."""
    encoded = json.dumps(value, default=str)
    for char, escape in _SCRIPT_ESCAPES.items():
        encoded = encoded.replace(char, escape)
    return encoded


def error_payload(error: BaseException | str) -> dict[str, str]:
    """Build the `{error: message}` payload for a failed step."""
    if isinstance(error, str):
        return {"error": error}
    message = getattr(error, "message", None)
    return {"error": message if isinstance(message, str) else str(error)}


def render_popup_response(payload: Mapping[str, Any], origin: str | None) -> str:
    """Return an HTML document that posts `payload` to its opener and closes.

    A concrete origin is used verbatim. The wildcard target is only used when
    no origin was captured for the flow.
    """
    props = dict(payload)
    error = props.get("error")
    if isinstance(error, BaseException):
        props.update(error_payload(error))

    target = origin if origin else WILDCARD_ORIGIN
    return _TEMPLATE.format(payload=_script_json(props), origin=_script_json(target))
