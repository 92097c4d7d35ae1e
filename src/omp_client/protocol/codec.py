"""XML codec for the wire format.

One call handles one complete message: ``encode`` renders a request tree to
text, ``decode`` turns one reply element into a generic decoded tree.

Decoded tree shape:
- an element without attributes or children becomes its text (``""`` when
  empty)
- any other element becomes a dict of its attributes and children; repeated
  child names collapse into a list in document order and non-blank text is
  kept under ``TEXT_KEY``
"""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from typing import Any

from ..errors import InvalidArgumentError, MalformedReplyError
from .nodes import RequestNode

TEXT_KEY = "_text"

# Outside the XML 1.0 Char production; the serializer does not escape these
_ILLEGAL_XML_CHARS = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f\ud800-\udfff\ufffe\uffff]")

DecodedValue = str | dict[str, Any] | list[Any]
DecodedTree = dict[str, DecodedValue]


def _check_chars(value: str, where: str) -> str:
    if _ILLEGAL_XML_CHARS.search(value):
        raise InvalidArgumentError(f"{where} contains characters not allowed in XML")
    return value


def _build_element(node: RequestNode) -> ET.Element:
    attrs = {key: _check_chars(value, f"<{node.name} {key}>") for key, value in node.attrs.items()}
    element = ET.Element(node.name, attrs)
    if node.text is not None:
        element.text = _check_chars(node.text, f"<{node.name}> text")
    for child in node.children:
        element.append(_build_element(child))
    return element


def encode(node: RequestNode) -> str:
    """Render a request tree as wire text.

    Text and attribute values are escaped by the serializer.

    Raises:
        InvalidArgumentError: If a value holds characters XML cannot carry
    """
    return ET.tostring(_build_element(node), encoding="unicode")


def _parse_root(text: str | bytes) -> ET.Element:
    if isinstance(text, bytes):
        text = text.decode("utf-8", errors="replace")
    stripped = text.strip()
    if not stripped:
        raise MalformedReplyError("Empty reply", raw=text)
    try:
        return ET.fromstring(stripped)
    except ET.ParseError as e:
        raise MalformedReplyError(f"Reply is not well-formed XML: {e}", raw=text) from e


def _element_value(element: ET.Element) -> DecodedValue:
    children = list(element)
    if not element.attrib and not children:
        return element.text or ""

    value: dict[str, Any] = dict(element.attrib)
    for child in children:
        child_value = _element_value(child)
        if child.tag not in value:
            value[child.tag] = child_value
        elif isinstance(value[child.tag], list):
            value[child.tag].append(child_value)
        else:
            value[child.tag] = [value[child.tag], child_value]

    if element.text and element.text.strip():
        value[TEXT_KEY] = element.text.strip()
    return value


def decode(text: str | bytes) -> DecodedTree:
    """Decode one reply element into ``{root_name: value}``.

    Raises:
        MalformedReplyError: If the text is empty or not well-formed.
    """
    root = _parse_root(text)
    return {root.tag: _element_value(root)}


def _element_node(element: ET.Element) -> RequestNode:
    children = list(element)
    text = element.text
    if text is not None and children and not text.strip():
        text = None
    node = RequestNode(name=element.tag, attrs=dict(element.attrib), text=text)
    for child in children:
        node.append(_element_node(child))
    return node


def parse(text: str | bytes) -> RequestNode:
    """Decode wire text back into a node tree without losing order."""
    return _element_node(_parse_root(text))
