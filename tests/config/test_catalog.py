"""
Tests for gatecheck_config: catalog loading, validation, seeding and
environment settings.
"""

import textwrap

import pytest
from sqlalchemy import func, select

from gatecheck_config import get_active_catalog, get_settings
from gatecheck_config.loader import compute_checksum, load_yaml_file, parse_catalog
from gatecheck_config.validator import validate_catalog
from gatecheck_kernel.domain.gate_check import GateCheckTransition
from gatecheck_kernel.models.gate_check import GateCheckTemplateModel
from gatecheck_kernel.services.template_service import TemplateService


def _write_catalog(tmp_path, body: str):
    (tmp_path / "gate_check_templates.yaml").write_text(textwrap.dedent(body))
    return tmp_path


class TestShippedCatalog:

    def test_covers_every_transition(self, catalog):
        assert {t.transition for t in catalog.transitions} == {t.value for t in GateCheckTransition}

    def test_every_transition_has_blocking_items(self, catalog):
        for template in catalog.transitions:
            assert any(item.blocking for item in template.items), template.transition

    def test_is_valid(self, catalog):
        result = validate_catalog(catalog)
        assert result.is_valid, result.errors
        assert result.warnings == []

    def test_default_sort_order_follows_position(self, catalog):
        orders = [i.sort_order for i in catalog.for_transition("framing_to_roofing").items]
        assert orders == sorted(orders)
        assert len(set(orders)) == len(orders)

    def test_checksum_is_deterministic(self, catalog):
        assert catalog.checksum == get_active_catalog().checksum
        assert len(catalog.checksum) == 64

    def test_trace_logged(self, captured_logs):
        catalog = get_active_catalog()

        traces = [r for r in captured_logs() if r["message"] == "GATECHECK_CONFIG_TRACE"]
        assert len(traces) == 1
        assert traces[0]["checksum"] == catalog.checksum
        assert traces[0]["item_count"] == catalog.item_count

    def test_template_items(self, catalog):
        items = catalog.to_template_items()
        assert len(items) == catalog.item_count
        assert all(isinstance(i.transition, GateCheckTransition) for i in items)


class TestCustomCatalogs:

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_catalog(tmp_path)

    def test_unknown_transition_rejected(self, tmp_path):
        config_dir = _write_catalog(tmp_path, """
            catalog_id: bad
            transitions:
              - transition: roofing_to_framing
                items:
                  - {code: X1, label: Something, blocking: true}
        """)
        with pytest.raises(ValueError, match="Unknown transition"):
            get_active_catalog(config_dir)

    def test_duplicate_codes_rejected(self, tmp_path):
        config_dir = _write_catalog(tmp_path, """
            catalog_id: dup
            transitions:
              - transition: framing_to_roofing
                items:
                  - {code: F1, label: One, blocking: true}
                  - {code: F1, label: Two}
        """)
        with pytest.raises(ValueError, match="duplicate item code"):
            get_active_catalog(config_dir)

    def test_empty_checklist_rejected(self, tmp_path):
        config_dir = _write_catalog(tmp_path, """
            catalog_id: empty
            transitions:
              - transition: framing_to_roofing
                items: []
        """)
        with pytest.raises(ValueError, match="no checklist items"):
            get_active_catalog(config_dir)

    def test_non_boolean_blocking_rejected(self, tmp_path):
        path = _write_catalog(tmp_path, """
            catalog_id: typo
            transitions:
              - transition: framing_to_roofing
                items:
                  - {code: F1, label: One, blocking: "yes please"}
        """) / "gate_check_templates.yaml"
        with pytest.raises(ValueError, match="blocking"):
            parse_catalog(load_yaml_file(path))

    def test_partial_catalog_warns(self, tmp_path):
        config_dir = _write_catalog(tmp_path, """
            catalog_id: partial
            version: 3
            transitions:
              - transition: framing_to_roofing
                items:
                  - {code: F1, label: Wall plumb, blocking: true, sort_order: 1}
                  - {code: F2, label: Site clean, sort_order: 2}
        """)
        catalog = get_active_catalog(config_dir)

        assert catalog.version == 3
        assert validate_catalog(catalog).warnings == [
            "No checklist defined for transition 'backframe_to_final'",
            "No checklist defined for transition 'roofing_to_trades'",
            "No checklist defined for transition 'trades_to_backframe'",
        ]

    def test_checksum_ignores_key_order(self):
        assert compute_checksum({"a": 1, "b": 2}) == compute_checksum({"b": 2, "a": 1})


class TestSeeding:

    def test_seed_inserts_every_item(self, session, catalog):
        inserted = TemplateService(session).seed_from_catalog(catalog.to_template_items())

        count = session.execute(select(func.count(GateCheckTemplateModel.id))).scalar_one()
        assert inserted == catalog.item_count
        assert count == catalog.item_count

    def test_seed_is_idempotent(self, session, catalog):
        service = TemplateService(session)
        service.seed_from_catalog(catalog.to_template_items())

        assert service.seed_from_catalog(catalog.to_template_items()) == 0

    def test_reseed_keeps_existing_rows(self, session, simple_templates, catalog):
        service = TemplateService(session)
        service.seed_from_catalog(catalog.to_template_items())

        f1 = session.execute(
            select(GateCheckTemplateModel).where(GateCheckTemplateModel.item_code == "F1")
        ).scalar_one()
        assert f1.item_label == "Wall plumb and square"


class TestSettings:

    def test_defaults(self, monkeypatch):
        for name in ("GATECHECK_DATABASE_URL", "GATECHECK_LOG_LEVEL", "GATECHECK_STALE_HOURS"):
            monkeypatch.delenv(name, raising=False)

        settings = get_settings()

        assert settings.database_url == "sqlite:///gatecheck.db"
        assert settings.log_level == "INFO"
        assert settings.stale_after_hours == 72.0

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("GATECHECK_DATABASE_URL", "postgresql://u:p@db/gatecheck")
        monkeypatch.setenv("GATECHECK_LOG_LEVEL", "debug")
        monkeypatch.setenv("GATECHECK_STALE_HOURS", "12.5")

        settings = get_settings()

        assert settings.database_url == "postgresql://u:p@db/gatecheck"
        assert settings.log_level == "DEBUG"
        assert settings.stale_after_hours == 12.5

    @pytest.mark.parametrize("value", ["0", "-4", "soon"])
    def test_invalid_stale_hours(self, monkeypatch, value):
        monkeypatch.setenv("GATECHECK_STALE_HOURS", value)
        with pytest.raises(ValueError):
            get_settings()
