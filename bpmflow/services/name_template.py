from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

_PLACEHOLDER = re.compile(r"\{\{(.*?)\}\}")


def normalize_field_name(name: str) -> str:
    """'Nombre Proveedor' -> 'nombre_proveedor'."""
    lowered = re.sub(r"\s+", "_", name.strip().lower())
    return re.sub(r"[^a-z0-9_]", "", lowered)


def resolve_name_template(template: str, fields: Mapping[str, Any]) -> str | None:
    """Fill every ``{{field}}`` of ``template`` from ``fields``.

    Each token is looked up by its exact name, then by its normalized name.
    Empty values do not count. Returns None unless every token resolved.
    """
    unresolved = False

    def _replace(match: re.Match) -> str:
        nonlocal unresolved
        name = match.group(1).strip()
        for key in (name, normalize_field_name(name)):
            value = fields.get(key)
            if value is not None and str(value) != "":
                return str(value)
        unresolved = True
        return match.group(0)

    resolved = _PLACEHOLDER.sub(_replace, template)
    return None if unresolved else resolved
