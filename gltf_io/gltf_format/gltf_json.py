"""Helpers for reading members out of the parsed manifest tree.

The manifest is consumed as plain ``json`` values: dicts, lists, strings and
numbers. These helpers return None (or a default) for absent or mistyped
members instead of raising, so callers decide what is an error.
"""

import base64
import binascii
from collections import namedtuple
from urllib.parse import unquote_to_bytes

from .gltf_errors import InvalidDocumentError


DataURI = namedtuple("DataURI", ("mime_type", "charset", "base64", "data"))


def find_object(obj, name):
    value = obj.get(name)
    return value if isinstance(value, dict) else None


def find_array(obj, name):
    value = obj.get(name)
    return value if isinstance(value, list) else None


def find_string(obj, name):
    value = obj.get(name)
    return value if isinstance(value, str) else None


def find_number(obj, name):
    value = obj.get(name)
    if isinstance(value, bool):
        return None
    return value if isinstance(value, (int, float)) else None


def member_or_default(obj, name, default):
    """Get a member if it has the same JSON type as default.

    Integers are accepted where a float default is given. Booleans never
    stand in for numbers.
    """
    value = obj.get(name)
    if value is None:
        return default
    if isinstance(default, bool):
        return value if isinstance(value, bool) else default
    if isinstance(default, int):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        return default
    if isinstance(default, float):
        number = find_number(obj, name)
        return float(number) if number is not None else default
    if isinstance(default, str):
        return value if isinstance(value, str) else default
    return value


def read_number_list(obj, name, length=None):
    """Read an array of numbers as a list of floats.

    Returns None if the member is absent, not an array, contains non-numbers,
    or (when length is given) has the wrong size.
    """
    values = find_array(obj, name)
    if values is None:
        return None
    if length is not None and len(values) != length:
        return None
    result = []
    for v in values:
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            return None
        result.append(float(v))
    return result


def parse_data_uri(uri):
    """Split a ``data:`` URI into its parts.

    Args:
        uri: string from a manifest ``uri`` member

    Returns:
        DataURI, or None if uri is not a data URI
    """
    if not uri.startswith("data:"):
        return None

    header, sep, payload = uri[5:].partition(",")
    if not sep:
        return None

    params = header.split(";")
    mime_type = params[0] or "text/plain"
    charset = None
    is_base64 = False
    for param in params[1:]:
        if param == "base64":
            is_base64 = True
        elif param.startswith("charset="):
            charset = param[8:]

    return DataURI(mime_type, charset, is_base64, payload)


def decode_data_uri(data_uri):
    """Decode the payload of a parsed data URI to bytes.

    Raises:
        InvalidDocumentError: if a base64 payload is malformed
    """
    if data_uri.base64:
        try:
            return base64.b64decode(data_uri.data)
        except (binascii.Error, ValueError) as exc:
            raise InvalidDocumentError(f"Malformed base64 data URI: {exc}") from exc
    return unquote_to_bytes(data_uri.data)


def encode_data_uri(data, mime_type="application/octet-stream"):
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"
