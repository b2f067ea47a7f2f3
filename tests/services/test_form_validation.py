"""Unit tests for bpmflow.services.form_validation."""

from __future__ import annotations

from bpmflow.models.activity_field import ActivityFieldDefinition
from bpmflow.services.form_validation import validate_form


def _field(name, **kwargs):
    return ActivityFieldDefinition(name=name, **kwargs)


class TestRequired:
    def test_missing_required_value(self):
        fields = [_field("monto", label="Monto", type="currency", required=True)]
        assert validate_form(fields, {}) == ['El campo "Monto" es obligatorio.']

    def test_whitespace_is_empty(self):
        fields = [_field("motivo", label="Motivo", required=True)]
        assert validate_form(fields, {"motivo": "   "}) == ['El campo "Motivo" es obligatorio.']

    def test_label_falls_back_to_name(self):
        fields = [_field("motivo", required=True)]
        assert validate_form(fields, {"motivo": None}) == ['El campo "motivo" es obligatorio.']

    def test_optional_blank_skips_other_checks(self):
        fields = [_field("correo", type="email", regex_pattern=r"^x")]
        assert validate_form(fields, {"correo": ""}) == []


class TestNumericLimits:
    def test_below_minimum(self):
        fields = [_field("monto", label="Monto", type="currency", min_value=10, max_value=1000)]
        assert validate_form(fields, {"monto": "5"}) == [
            'El valor de "Monto" debe ser al menos 10.'
        ]

    def test_above_maximum(self):
        fields = [_field("monto", label="Monto", type="number", max_value=1000)]
        assert validate_form(fields, {"monto": 1500}) == [
            'El valor de "Monto" no debe exceder 1000.'
        ]

    def test_fractional_limit_kept(self):
        fields = [_field("tasa", label="Tasa", type="number", min_value=2.5)]
        assert validate_form(fields, {"tasa": "1"}) == ['El valor de "Tasa" debe ser al menos 2.5.']

    def test_limits_ignored_for_text_fields(self):
        fields = [_field("codigo", type="text", min_value=10)]
        assert validate_form(fields, {"codigo": "5"}) == []

    def test_within_limits(self):
        fields = [_field("monto", type="currency", min_value=10, max_value=1000)]
        assert validate_form(fields, {"monto": "500"}) == []


class TestFormats:
    def test_regex_mismatch(self):
        fields = [_field("telefono", label="Teléfono", regex_pattern=r"^\d{10}$")]
        assert validate_form(fields, {"telefono": "123"}) == [
            'El campo "Teléfono" no tiene un formato válido.'
        ]

    def test_regex_match(self):
        fields = [_field("telefono", regex_pattern=r"^\d{10}$")]
        assert validate_form(fields, {"telefono": "3001234567"}) == []

    def test_invalid_regex_is_skipped(self):
        fields = [_field("telefono", regex_pattern="([")]
        assert validate_form(fields, {"telefono": "123"}) == []

    def test_email(self):
        fields = [_field("correo", label="Correo", type="email")]
        assert validate_form(fields, {"correo": "ana@acme"}) == [
            'El campo "Correo" debe ser un correo válido.'
        ]
        assert validate_form(fields, {"correo": "ana@acme.com"}) == []


def test_errors_follow_field_order():
    fields = [
        _field("a", label="A", required=True),
        _field("b", label="B", type="email"),
    ]
    assert validate_form(fields, {"b": "nope"}) == [
        'El campo "A" es obligatorio.',
        'El campo "B" debe ser un correo válido.',
    ]
