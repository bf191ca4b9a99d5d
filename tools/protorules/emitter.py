"""
Build file emitter: renders ``Rule`` values as Starlark text.

Layout follows buildifier: one attribute per line, lists with more than one
item split one item per line, dicts always split.  Attribute order is the
rule's own order, with ``deps`` last.
"""

from typing import List, Sequence

from .compile_rule import LoadInfo, Rule

INDENT = "    "


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
    return f'"{escaped}"'


def _value_lines(value: object, indent: str) -> List[str]:
    """Render an attribute value; the first line continues the 'key = ' line."""
    if isinstance(value, str):
        return [_quote(value)]
    if isinstance(value, bool):
        return ["True" if value else "False"]
    if isinstance(value, int):
        return [str(value)]
    if isinstance(value, (list, tuple)):
        if len(value) <= 1:
            return ["[" + ", ".join(_quote(str(v)) for v in value) + "]"]
        lines = ["["]
        lines.extend(f"{indent}{INDENT}{_quote(str(v))}," for v in value)
        lines.append(f"{indent}]")
        return lines
    if isinstance(value, dict):
        if not value:
            return ["{}"]
        lines = ["{"]
        lines.extend(f"{indent}{INDENT}{_quote(str(k))}: {_quote(str(v))},"
                     for k, v in value.items())
        lines.append(f"{indent}}}")
        return lines
    raise TypeError(f"cannot emit attribute value of type {type(value).__name__}")


def _attr_lines(key: str, value: object) -> List[str]:
    rendered = _value_lines(value, INDENT)
    lines = [f"{INDENT}{key} = {rendered[0]}"]
    lines.extend(rendered[1:])
    lines[-1] += ","
    return lines


def emit_rule(rule: Rule) -> str:
    """Render one rule, preceded by its comment lines."""
    lines = [f"# {line}" if line else "#" for line in rule.comment]
    lines.append(f"{rule.kind}(")
    lines.extend(_attr_lines("name", rule.name))
    for key, value in rule.attrs.items():
        lines.extend(_attr_lines(key, value))
    if rule.deps:
        lines.extend(_attr_lines("deps", rule.deps))
    lines.append(")")
    return "\n".join(lines) + "\n"


def emit_load(load: LoadInfo) -> str:
    symbols = ", ".join(_quote(s) for s in sorted(load.symbols))
    return f"load({_quote(load.name)}, {symbols})\n"


def emit_build_file(rules: Sequence[Rule], loads: Sequence[LoadInfo] = ()) -> str:
    """Render load statements followed by the rules, separated by blank lines."""
    sections = []
    if loads:
        ordered = sorted(loads, key=lambda load: load.name)
        sections.append("".join(emit_load(load) for load in ordered))
    sections.extend(emit_rule(rule) for rule in rules)
    return "\n".join(sections)
