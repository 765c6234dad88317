"""
Script bundling.

The bundle is the client runtime, followed by every resolved component
module wrapped in a ``define`` call, the optional evaluation context module,
and a final ``mount`` call carrying the AST and datasets.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

from folio.core.config import PACKAGE_DIR
from folio.core.errors import PipelineError
from folio.resolvers import ResolvedComponent

RUNTIME_FILE = PACKAGE_DIR / "client" / "runtime.js"

Transform = Callable[[str, str], str]

_LINE_COMMENT = re.compile(r"^\s*//.*$")
_BACKTICK = re.compile(r"(?<!\\)`")


def _json(value: Any) -> str:
    # "</script>" inside data must not end the page's script tag
    return json.dumps(value, default=str, separators=(",", ":")).replace("</", "<\\/")


def apply_transforms(source: str, filename: str, transforms: Sequence[Transform]) -> str:
    """Run a module's source through each transform plugin in order."""
    for transform in transforms:
        name = getattr(transform, "__qualname__", repr(transform))
        try:
            source = transform(source, filename)
        except Exception as e:
            raise PipelineError(f"Transform {name} failed on {filename}: {e}", stage="bundle") from e
        if not isinstance(source, str):
            raise PipelineError(
                f"Transform {name} returned {type(source).__name__} for {filename}, expected str",
                stage="bundle",
            )
    return source


def minify_script(source: str) -> str:
    """
    Drop blank lines, full-line comments and indentation.

    Lines inside a multi-line template literal are kept verbatim. Backticks
    inside ordinary strings or trailing comments are not recognised.
    """
    lines = []
    in_template = False
    for line in source.splitlines():
        toggles = len(_BACKTICK.findall(line)) % 2 == 1
        if in_template:
            lines.append(line)
            in_template = not toggles
            continue
        if not line.strip() or _LINE_COMMENT.match(line):
            continue
        if toggles:
            # the end of this line belongs to the literal
            in_template = True
            lines.append(line.lstrip())
        else:
            lines.append(line.strip())
    return "\n".join(lines)


def _module(name: str, source: str) -> str:
    return (
        f"Folio.define({_json(name)}, function (module, exports, require) {{\n"
        f"{source}\n"
        f"}});"
    )


def bundle_script(
    *,
    ast: list[dict[str, Any]],
    components: Sequence[ResolvedComponent],
    data: dict[str, Any],
    context: str | None = None,
    transforms: Sequence[Transform] = (),
    minify: bool = False,
) -> str:
    """
    Assemble the script bundle.

    Raises:
        PipelineError: stage "bundle" when a module cannot be read or transformed
    """
    parts = ["/* folio bundle */", RUNTIME_FILE.read_text(encoding="utf-8")]

    for component in components:
        try:
            source = component.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise PipelineError(f"Cannot read component {component.name}: {e}", stage="bundle") from e
        source = apply_transforms(source, str(component.path), transforms)
        parts.append(_module(component.name, source))

    has_context = False
    if context:
        context_path = Path(context)
        if not context_path.is_file():
            raise PipelineError(f"Context module {context} not found", stage="bundle")
        try:
            source = context_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise PipelineError(f"Cannot read context module {context}: {e}", stage="bundle") from e
        source = apply_transforms(source, context, transforms)
        parts.append(_module("__context__", source))
        has_context = True

    parts.append(
        f"Folio.mount({{ast: {_json(ast)}, data: {_json(data)}, "
        f"context: {'true' if has_context else 'false'}}});"
    )

    script = "\n".join(parts) + "\n"
    return minify_script(script) + "\n" if minify else script
