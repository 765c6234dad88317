"""
Document compiler.

Turns folio markup into a list of AST nodes. The markup is line oriented:

- ``# Title`` to ``###### Title`` are headings
- blank-line separated text runs are paragraphs, with ``**strong**``,
  ``*em*``, ```code``` and self-closing inline tags
- fenced code blocks are kept verbatim
- a line holding only ``[Name key:value /]`` is a block tag, and
  ``[Name ...]`` ... ``[/Name]`` wraps children

Tag names starting with an uppercase letter are components; ``data``,
``var`` and ``derived`` declare state; other lowercase names are plain
HTML elements.

Attribute values: ``"text"``, numbers and ``true``/``false`` are literal
values, bare identifiers are variables and ```code``` is an expression.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable, Iterator, Sequence
from pathlib import Path
from typing import Any

from folio.core.errors import PipelineError, make_parse_error

Node = dict[str, Any]

STATE_TAGS = ("data", "var", "derived")

_HEADING = re.compile(r"^(#{1,6})\s+(.*?)\s*#*\s*$")
# Attribute text; quoted values may contain "]"
_ATTRS = r'(?:"(?:[^"\\]|\\.)*"|`[^`]*`|[^\]"`])*?'
_BLOCK_TAG = re.compile(
    r"^\[(?P<close>/)?(?P<name>[A-Za-z][\w-]*)(?P<attrs>" + _ATTRS + r")(?P<self>/)?\]$"
)
_INLINE = re.compile(
    r"\*\*(?P<strong>.+?)\*\*"
    r"|\*(?P<em>[^*\s][^*]*?)\*"
    r"|`(?P<code>[^`]+)`"
    r"|\[(?P<tag>[A-Za-z][\w-]*)(?P<attrs>" + _ATTRS + r")/\]"
)
_ATTR = re.compile(r'\s*(?P<key>[A-Za-z_][\w-]*)\s*:\s*(?P<value>"(?:[^"\\]|\\.)*"|`[^`]*`|[^\s"`]+)')
_NUMBER = re.compile(r"^-?\d+(\.\d+)?([eE][-+]?\d+)?$")
_IDENTIFIER = re.compile(r"^[A-Za-z_$][\w$.]*$")


class _Syntax(Exception):
    """Internal: a syntax problem at a column of the current line."""

    def __init__(self, message: str, column: int = 1):
        super().__init__(message)
        self.column = column


def text_node(value: str) -> Node:
    return {"type": "text", "value": value}


def _node(kind: str, name: str, properties: dict[str, Any] | None = None) -> Node:
    return {"type": kind, "name": name, "properties": properties or {}, "children": []}


def _parse_value(raw: str) -> dict[str, Any]:
    if raw.startswith('"'):
        try:
            return {"type": "value", "value": json.loads(raw)}
        except ValueError:
            return {"type": "value", "value": raw[1:-1]}
    if raw.startswith("`"):
        return {"type": "expression", "value": raw[1:-1]}
    if raw in ("true", "false"):
        return {"type": "value", "value": raw == "true"}
    if _NUMBER.match(raw):
        is_float = "." in raw or "e" in raw.lower()
        return {"type": "value", "value": float(raw) if is_float else int(raw)}
    if _IDENTIFIER.match(raw):
        return {"type": "variable", "value": raw}
    raise _Syntax(f"Invalid attribute value {raw!r}")


def parse_attributes(text: str) -> dict[str, Any]:
    """Parse ``key:value`` pairs from the inside of a tag."""
    properties: dict[str, Any] = {}
    pos = 0
    text = text.rstrip()
    while pos < len(text):
        if text[pos:].strip() == "":
            break
        match = _ATTR.match(text, pos)
        if match is None:
            raise _Syntax(f"Malformed attribute near {text[pos:].strip()!r}", pos + 1)
        properties[match.group("key")] = _parse_value(match.group("value"))
        pos = match.end()
    return properties


def _tag_node(name: str, attrs: str) -> Node:
    properties = parse_attributes(attrs)
    if name in STATE_TAGS:
        node = _node(name, name, properties)
        required = ("name", "source") if name == "data" else ("name",)
        for key in required:
            if key not in properties:
                raise _Syntax(f"[{name}] requires a {key!r} attribute")
        return node
    kind = "component" if name[0].isupper() else "element"
    return _node(kind, name, properties)


def parse_inline(text: str) -> list[Node]:
    """Parse inline markup within a heading or paragraph."""
    nodes: list[Node] = []
    pos = 0
    for match in _INLINE.finditer(text):
        if match.start() > pos:
            nodes.append(text_node(text[pos : match.start()]))
        if match.group("strong") is not None:
            strong = _node("element", "strong")
            strong["children"] = parse_inline(match.group("strong"))
            nodes.append(strong)
        elif match.group("em") is not None:
            em = _node("element", "em")
            em["children"] = parse_inline(match.group("em"))
            nodes.append(em)
        elif match.group("code") is not None:
            code = _node("element", "code")
            code["children"] = [text_node(match.group("code"))]
            nodes.append(code)
        else:
            try:
                nodes.append(_tag_node(match.group("tag"), match.group("attrs")))
            except _Syntax as e:
                raise _Syntax(str(e), match.start() + e.column) from e
        pos = match.end()
    if pos < len(text):
        nodes.append(text_node(text[pos:]))
    return nodes


def parse(source: str, file: Path | None = None) -> list[Node]:
    """
    Parse a document into AST nodes.

    Raises:
        PipelineError: stage "parse", with the offending line as context
    """
    root: list[Node] = []
    # (node, line number) for each open block tag
    stack: list[tuple[Node, int]] = []
    paragraph: list[str] = []
    paragraph_line = 0
    code_lines: list[str] | None = None
    code_start = 0
    code_lang = ""

    def container() -> list[Node]:
        return stack[-1][0]["children"] if stack else root

    def flush_paragraph() -> None:
        if paragraph:
            p = _node("element", "p")
            try:
                p["children"] = parse_inline(" ".join(paragraph))
            except _Syntax as e:
                raise make_parse_error(str(e), source, paragraph_line, 1, file) from e
            container().append(p)
            paragraph.clear()

    lines = source.splitlines()
    for lineno, line in enumerate(lines, start=1):
        stripped = line.strip()

        if code_lines is not None:
            if stripped.startswith("```"):
                pre = _node("element", "pre")
                language = {"language": {"type": "value", "value": code_lang}} if code_lang else None
                code = _node("element", "code", language)
                code["children"] = [text_node("\n".join(code_lines))]
                pre["children"] = [code]
                container().append(pre)
                code_lines = None
            else:
                code_lines.append(line)
            continue

        if stripped.startswith("```"):
            flush_paragraph()
            code_lines, code_start, code_lang = [], lineno, stripped[3:].strip()
            continue

        if not stripped:
            flush_paragraph()
            continue

        try:
            heading = _HEADING.match(stripped)
            if heading:
                flush_paragraph()
                h = _node("element", f"h{len(heading.group(1))}")
                h["children"] = parse_inline(heading.group(2))
                container().append(h)
                continue

            tag = _BLOCK_TAG.match(stripped)
            if tag:
                flush_paragraph()
                name = tag.group("name")
                if tag.group("close"):
                    if not stack or stack[-1][0]["name"] != name:
                        expected = f"[/{stack[-1][0]['name']}]" if stack else "no closing tag"
                        raise _Syntax(f"Unexpected [/{name}], expected {expected}")
                    stack.pop()
                    continue
                node = _tag_node(name, tag.group("attrs"))
                container().append(node)
                if not tag.group("self") and node["type"] in ("component", "element"):
                    stack.append((node, lineno))
                continue
        except _Syntax as e:
            raise make_parse_error(str(e), source, lineno, e.column, file) from e

        if not paragraph:
            paragraph_line = lineno
        paragraph.append(stripped)

    if code_lines is not None:
        raise make_parse_error("Unterminated code block", source, code_start, 1, file)
    flush_paragraph()
    if stack:
        node, lineno = stack[-1]
        raise make_parse_error(f"Unclosed [{node['name']}]", source, lineno, 1, file)

    return root


def compile_document(
    source: str,
    post_processors: Sequence[Callable[[list[Node]], list[Node] | None]] = (),
    file: Path | None = None,
) -> list[Node]:
    """
    Parse a document and run post-processors over the AST in order.

    A post-processor returns a new AST, or None after editing it in place.
    """
    ast = parse(source, file)
    for processor in post_processors:
        try:
            result = processor(ast)
        except Exception as e:
            name = getattr(processor, "__qualname__", repr(processor))
            raise PipelineError(f"Post-processor {name} failed: {e}", stage="parse") from e
        if result is not None:
            ast = result
    return ast


def walk(nodes: list[Node]) -> Iterator[Node]:
    """Depth-first iteration over every node."""
    for node in nodes:
        yield node
        yield from walk(node.get("children", []))


def component_names(ast: list[Node]) -> list[str]:
    """Distinct component tag names, in document order."""
    return list(dict.fromkeys(n["name"] for n in walk(ast) if n["type"] == "component"))


def dataset_declarations(ast: list[Node]) -> list[tuple[str, str]]:
    """(name, source) of every ``[data]`` tag with literal attributes."""
    declarations = []
    for node in walk(ast):
        if node["type"] != "data":
            continue
        name = node["properties"]["name"]["value"]
        source = node["properties"]["source"]["value"]
        declarations.append((str(name), str(source)))
    return declarations


def document_title(ast: list[Node], default: str = "folio") -> str:
    """Text of the first h1, if any."""
    for node in walk(ast):
        if node["type"] == "element" and node["name"] == "h1":
            text = "".join(n["value"] for n in walk(node["children"]) if n["type"] == "text")
            return text.strip() or default
    return default
