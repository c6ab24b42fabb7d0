"""
Tests para capex.metrics_dashboard: payload completo que consume la vista.
"""

import json

import pytest

from capex.data import load_dashboard_data, parse_capex_payload, prepare_context
from capex.filters import CapexFilters, clear_filters, set_filter
from capex.metrics_dashboard import NO_DATA_MESSAGE, compute_dashboard


@pytest.fixture
def data_ctx(dataset_file):
    return load_dashboard_data(dataset_file)


def _payload(filters, data_ctx):
    return compute_dashboard(filters, prepare_context(filters, data_ctx))


class TestComputeDashboard:

    def test_area_filter_end_to_end(self, data_ctx):
        payload = _payload(CapexFilters(area="Mina A"), data_ctx)
        kpis = payload["kpis"]
        assert payload["has_data"] is True
        assert kpis["total_presupuestado"] == 1500
        assert kpis["total_ejecutado"] == 1500
        assert kpis["activos"] == 1
        assert kpis["fmt"]["pct_ejecucion"] == "100.0%"
        assert kpis["fmt"]["total_ejecutado"] == "$2K"
        assert kpis["fmt"]["variance"] == "Exactamente en presupuesto"
        top = payload["top_projects"][0]
        assert top["id"] == "P1"
        assert top["sobre_ejec"] is False
        assert top["status"] == "on-track"
        assert top["status_color"] == "green"
        assert top["estado_badge"] == {"class": "status-activo", "label": "En ejecución"}
        assert payload["active_filters"] == ["Área: Mina A"]

    def test_unfiltered(self, data_ctx):
        payload = _payload(clear_filters(), data_ctx)
        assert payload["kpis"]["fmt"]["pct_ejecucion"] == "71.4%"
        assert payload["kpis"]["budget_status"] == "under"
        assert [g["group"] for g in payload["by_area"]] == ["Mina A", "Mina B"]
        assert [b["label"] for b in payload["monthly"]] == ["Ene 2024", "Feb 2024"]
        assert payload["comparison"] == payload["top_projects"][:8]

    def test_charts_are_vega_lite_specs(self, data_ctx):
        charts = _payload(clear_filters(), data_ctx)["charts"]
        for name in ("by_area", "by_tipo", "monthly", "comparison"):
            assert "$schema" in charts[name]
            assert "vega-lite" in charts[name]["$schema"]

    def test_no_data_for_filters(self, data_ctx):
        payload = _payload(CapexFilters(anio=1999), data_ctx)
        assert payload["has_data"] is False
        assert payload["no_data_message"] == NO_DATA_MESSAGE
        assert payload["kpis"]["total_ejecutado"] == 0
        assert payload["kpis"]["pct_ejecucion"] == 0
        assert payload["by_area"] == []
        assert payload["monthly"] == []
        assert payload["top_projects"] == []
        assert all(spec is None for spec in payload["charts"].values())

    def test_set_then_clear_restores_full_view(self, data_ctx):
        f = set_filter(clear_filters(), "region", "Sur")
        assert _payload(f, data_ctx)["kpis"]["total_presupuestado"] == 2000
        f = clear_filters()
        assert _payload(f, data_ctx)["kpis"]["total_presupuestado"] == 3500

    def test_payload_is_json_serializable(self, data_ctx):
        json.dumps(_payload(clear_filters(), data_ctx))

    def test_over_execution_row(self):
        projects, records = parse_capex_payload(
            {
                "proyectos": [{"id": "P1", "nombre": "Uno", "estado": "Desconocido"}],
                "registros": [{"id_proyecto": "P1", "anio": 2024, "mes": 1, "presupuestado": 100, "ejecutado": 120}],
            }
        )
        ctx = prepare_context(clear_filters(), {"projects": projects, "records": records})
        row = compute_dashboard(clear_filters(), ctx)["top_projects"][0]
        assert row["status"] == "at-risk"
        assert row["fmt"]["pct"] == "120%"
        assert row["progress_pct"] == 100.0
        assert row["estado_badge"] == {"class": "status-cerrado", "label": "Desconocido"}

    def test_ranking_pct_half_rounds_up(self):
        projects, records = parse_capex_payload(
            {
                "proyectos": [{"id": "P1", "nombre": "Uno", "estado": "En ejecución"}],
                "registros": [{"id_proyecto": "P1", "anio": 2024, "mes": 1, "presupuestado": 1000, "ejecutado": 5}],
            }
        )
        ctx = prepare_context(clear_filters(), {"projects": projects, "records": records})
        row = compute_dashboard(clear_filters(), ctx)["top_projects"][0]
        assert row["fmt"]["pct"] == "1%"
