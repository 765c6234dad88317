"""
Server-side rendering of the document AST to static HTML.

Components are rendered as placeholders that the client runtime hydrates;
state tags (data, var, derived) produce no markup.
"""

from __future__ import annotations

from markupsafe import Markup, escape

from .compiler import STATE_TAGS, Node

VOID_ELEMENTS = frozenset({"br", "hr", "img", "input", "meta", "link", "source", "wbr"})


def _attributes(node: Node) -> str:
    parts = []
    for key, prop in node.get("properties", {}).items():
        if prop.get("type") != "value":
            continue
        value = prop["value"]
        if value is True:
            parts.append(f" {escape(key)}")
        elif value is not False and value is not None:
            parts.append(f' {escape(key)}="{escape(value)}"')
    return "".join(parts)


def _render(node: Node, counter: list[int]) -> str:
    kind = node["type"]
    if kind == "text":
        return str(escape(node["value"]))
    if kind in STATE_TAGS:
        return ""

    inner = "".join(_render(child, counter) for child in node.get("children", []))

    if kind == "component":
        index = counter[0]
        counter[0] += 1
        return (
            f'<div class="folio-component" data-component="{escape(node["name"])}" '
            f'data-index="{index}">{inner}</div>'
        )

    name = node["name"]
    if name in VOID_ELEMENTS:
        return f"<{name}{_attributes(node)}>"
    return f"<{name}{_attributes(node)}>{inner}</{name}>"


def render_html(ast: list[Node]) -> Markup:
    """Render the AST to HTML markup."""
    counter = [0]
    return Markup("\n".join(_render(node, counter) for node in ast))
