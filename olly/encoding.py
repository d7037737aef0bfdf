"""Serialization of the configuration documents mounted into containers."""

from __future__ import annotations

from typing import Any

import yaml
from jinja2 import Environment

_INI_TEMPLATE = Environment(keep_trailing_newline=True).from_string(
    "{% for key, value in top %}{{ key }} = {{ value }}\n{% endfor %}"
    "{% for section, items in sections %}"
    "{% if loop.index > 1 or top %}\n{% endif %}"
    "[{{ section }}]\n"
    "{% for key, value in items %}{{ key }} = {{ value }}\n{% endfor %}"
    "{% endfor %}"
)


def dump_yaml(data: Any) -> str:
    """Serialize to block-style YAML, keeping key order."""
    return yaml.safe_dump(
        data,
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True,
    )


def _ini_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return ",".join(_ini_value(v) for v in value)
    return str(value)


def _ini_sections(
    data: dict[str, Any], prefix: str, out: list[tuple[str, list[tuple[str, str]]]]
) -> None:
    scalars = [(k, _ini_value(v)) for k, v in data.items() if not isinstance(v, dict)]
    if scalars:
        out.append((prefix, scalars))
    for key, value in data.items():
        if isinstance(value, dict):
            _ini_sections(value, f"{prefix}.{key}", out)


def dump_ini(data: dict[str, Any]) -> str:
    """Serialize a nested mapping to an INI document.

    Top-level scalars come first, then one ``[section]`` per mapping.
    Nested mappings become dotted sections (``[auth.anonymous]``) and
    sections without scalar keys are left out.
    """
    top = [(k, _ini_value(v)) for k, v in data.items() if not isinstance(v, dict)]
    sections: list[tuple[str, list[tuple[str, str]]]] = []
    for key, value in data.items():
        if isinstance(value, dict):
            _ini_sections(value, key, sections)
    return _INI_TEMPLATE.render(top=top, sections=sections)
