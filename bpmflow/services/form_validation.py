"""Advisory validation of an activity form before it is saved or advanced.

Returns human-readable messages; callers block the action when any are returned.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from typing import Any

from bpmflow.models.activity_field import ActivityFieldDefinition, FieldKind
from bpmflow.services.conditions import parse_number

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def _fmt_limit(limit: float) -> str:
    return str(int(limit)) if float(limit).is_integer() else str(limit)


def validate_form(
    fields: Iterable[ActivityFieldDefinition],
    form_data: Mapping[str, Any],
) -> list[str]:
    errors: list[str] = []

    for field in fields:
        raw = form_data.get(field.name)
        value = "" if raw is None else str(raw)
        label = field.display_label
        has_value = value.strip() != ""

        if field.required and not has_value:
            errors.append(f'El campo "{label}" es obligatorio.')

        if not has_value:
            continue

        if field.regex_pattern:
            try:
                if not re.search(field.regex_pattern, value):
                    errors.append(f'El campo "{label}" no tiene un formato válido.')
            except re.error:
                logger.error(
                    "Invalid regex pattern on field %s: %r", field.name, field.regex_pattern
                )

        kind = field.kind
        if kind.is_numeric:
            number = parse_number(value)
            if number is not None:
                if field.min_value is not None and number < field.min_value:
                    errors.append(
                        f'El valor de "{label}" debe ser al menos {_fmt_limit(field.min_value)}.'
                    )
                if field.max_value is not None and number > field.max_value:
                    errors.append(
                        f'El valor de "{label}" no debe exceder {_fmt_limit(field.max_value)}.'
                    )

        if kind == FieldKind.EMAIL and not EMAIL_PATTERN.match(value):
            errors.append(f'El campo "{label}" debe ser un correo válido.')

    return errors
