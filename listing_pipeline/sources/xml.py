"""XML to dict conversion for Trading API responses.

Elements become dicts keyed by tag (namespace stripped). Repeated
children become lists, text-only elements become strings, and elements
carrying attributes keep them as keys with the text under "_":

    <CurrentPrice currencyID="USD">19.99</CurrentPrice>
    -> {"CurrentPrice": {"currencyID": "USD", "_": "19.99"}}
"""

from __future__ import annotations

from typing import Any

from lxml import etree

from listing_pipeline.core.errors import MalformedResponseError

TEXT_KEY = "_"

_PARSER = etree.XMLParser(resolve_entities=False, no_network=True, huge_tree=True)


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1] if "}" in tag else tag


def element_to_value(element: etree._Element) -> Any:
    """Convert one element (recursively) to a str or dict."""
    children = [child for child in element if isinstance(child.tag, str)]
    text = (element.text or "").strip()
    attrs = {_local_name(k): v for k, v in element.attrib.items()}

    if not children and not attrs:
        return text

    value: dict[str, Any] = dict(attrs)
    for child in children:
        key = _local_name(child.tag)
        child_value = element_to_value(child)
        if key in value:
            existing = value[key]
            if isinstance(existing, list):
                existing.append(child_value)
            else:
                value[key] = [existing, child_value]
        else:
            value[key] = child_value

    if text:
        value[TEXT_KEY] = text
    return value


def parse_xml(text: str | bytes) -> dict[str, Any]:
    """Parse an XML document into {root_tag: value}.

    Raises:
        MalformedResponseError: if the body is not well-formed XML
    """
    data = text.encode("utf-8") if isinstance(text, str) else text
    try:
        root = etree.fromstring(data, parser=_PARSER)
    except etree.XMLSyntaxError as e:
        body = data.decode("utf-8", errors="replace")
        raise MalformedResponseError(f"Invalid XML: {e}", body=body) from e
    if root is None:
        raise MalformedResponseError("Empty XML document")
    return {_local_name(root.tag): element_to_value(root)}


def as_list(value: Any) -> list[Any]:
    """Normalize a maybe-repeated child to a list."""
    if value is None or value == "":
        return []
    return value if isinstance(value, list) else [value]


def dig(data: Any, *path: str | int, default: Any = None) -> Any:
    """Follow a key path through nested dicts/lists, returning `default` when absent.

    Integer steps index into lists; a single value is treated as a
    one-element list.
    """
    current = data
    for step in path:
        if isinstance(step, int):
            items = as_list(current)
            if step >= len(items):
                return default
            current = items[step]
        elif isinstance(current, dict):
            if step not in current:
                return default
            current = current[step]
        else:
            return default
        if current is None:
            return default
    return current


def text_of(value: Any) -> str:
    """Text content of a parsed value (plain string or attribute dict)."""
    if value is None:
        return ""
    if isinstance(value, dict):
        return str(value.get(TEXT_KEY, ""))
    if isinstance(value, list):
        return text_of(value[0]) if value else ""
    return str(value)
