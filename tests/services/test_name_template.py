from __future__ import annotations

import pytest

from bpmflow.services.name_template import normalize_field_name, resolve_name_template


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("Nombre Proveedor", "nombre_proveedor"),
        ("  Monto Total (USD) ", "monto_total_usd"),
        ("monto", "monto"),
    ],
)
def test_normalize_field_name(raw, expected):
    assert normalize_field_name(raw) == expected


class TestResolveNameTemplate:
    def test_all_tokens_resolved(self):
        fields = {"proveedor": "ACME", "monto": "1500"}
        assert resolve_name_template("Compra {{proveedor}} - {{monto}}", fields) == (
            "Compra ACME - 1500"
        )

    def test_any_missing_token_leaves_name_unchanged(self):
        assert resolve_name_template("Compra {{proveedor}} - {{monto}}", {"proveedor": "ACME"}) is None

    def test_empty_value_does_not_count(self):
        assert resolve_name_template("Compra {{proveedor}}", {"proveedor": ""}) is None

    def test_normalized_lookup(self):
        assert resolve_name_template("{{ Nombre Proveedor }}", {"nombre_proveedor": "ACME"}) == "ACME"

    def test_template_without_tokens(self):
        assert resolve_name_template("Compra fija", {}) == "Compra fija"
