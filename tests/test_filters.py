"""
Tests para capex.filters: selección de filtros y motor de filtrado.
"""

import pandas as pd
import pytest

from capex.data import parse_capex_payload
from capex.filters import (
    CapexFilters,
    active_filter_labels,
    apply_filters,
    build_project_lookup,
    clear_filters,
    filter_option_label,
    normalize_filters,
    set_filter,
)


class TestNormalizeFilters:

    def test_empty_mapping_is_all_wildcards(self):
        assert normalize_filters({}) == CapexFilters()
        assert normalize_filters(None).is_empty()

    def test_empty_strings_are_unset(self):
        f = normalize_filters({"anio": "", "area": "  ", "region": None})
        assert f.is_empty()

    def test_year_and_month_parsed_to_int(self):
        f = normalize_filters({"anio": "2024", "mes": 3})
        assert f.anio == 2024
        assert f.mes == 3

    def test_unparsable_month_is_ignored(self):
        assert normalize_filters({"mes": "marzo"}).mes is None

    def test_existing_selection_passes_through(self):
        f = CapexFilters(area="Mina A")
        assert normalize_filters(f) is f


class TestSetAndClear:

    def test_set_filter_returns_new_selection(self):
        base = CapexFilters()
        updated = set_filter(base, "area", "Mina A")
        assert updated.area == "Mina A"
        assert base.area is None

    def test_set_filter_empty_value_removes_constraint(self):
        f = set_filter(CapexFilters(area="Mina A", anio=2024), "area", "")
        assert f.area is None
        assert f.anio == 2024

    def test_set_filter_unknown_field(self):
        with pytest.raises(ValueError):
            set_filter(CapexFilters(), "responsable", "Ana")

    def test_clear_filters(self):
        assert clear_filters() == CapexFilters()


class TestActiveFilterLabels:

    def test_labels_in_field_order(self):
        f = CapexFilters(region="Norte", mes=1, anio=2024)
        assert active_filter_labels(f) == ["Año: 2024", "Mes: Ene", "Región: Norte"]

    def test_no_labels_when_empty(self):
        assert active_filter_labels(CapexFilters()) == []


class TestApplyFilters:

    def test_clear_selection_returns_full_dataset(self, projects, records):
        out = apply_filters(projects, records, clear_filters())
        pd.testing.assert_frame_equal(out.records, records)
        pd.testing.assert_frame_equal(out.projects, projects)

    def test_filter_by_area(self, projects, records):
        out = apply_filters(projects, records, CapexFilters(area="Mina A"))
        assert list(out.records.index) == [0, 1]
        assert out.projects["id"].tolist() == ["P1"]

    def test_conjunction_of_record_and_project_fields(self, projects, records):
        out = apply_filters(projects, records, CapexFilters(anio=2024, mes=1, estado="Cerrado"))
        assert out.records["id_proyecto"].tolist() == ["P2"]

    def test_every_filtered_record_satisfies_all_predicates(self, projects, records):
        lookup = build_project_lookup(projects)
        selections = [
            CapexFilters(anio=2024),
            CapexFilters(mes=2),
            CapexFilters(area="Mina B", mes=1),
            CapexFilters(tipo="Expansión", region="Norte"),
            CapexFilters(estado="En ejecución", anio=2024, mes=1),
        ]
        for f in selections:
            out = apply_filters(projects, records, f)
            assert set(out.records.index) <= set(records.index)
            for _, rec in out.records.iterrows():
                project = lookup[rec["id_proyecto"]]
                assert f.anio is None or rec["anio"] == f.anio
                assert f.mes is None or rec["mes"] == f.mes
                for name in ("area", "tipo", "estado", "region"):
                    assert getattr(f, name) is None or project[name] == getattr(f, name)

    def test_no_match_is_empty_not_error(self, projects, records):
        out = apply_filters(projects, records, CapexFilters(anio=1999))
        assert out.records.empty
        assert out.projects.empty

    def test_unknown_project_records_are_excluded(self, example_payload):
        example_payload["registros"].append({"id_proyecto": "P99", "anio": 2024, "mes": 1, "presupuestado": 10, "ejecutado": 10})
        projects, records = parse_capex_payload(example_payload)
        out = apply_filters(projects, records, clear_filters())
        assert "P99" not in out.records["id_proyecto"].tolist()
        assert len(out.records) == 3

    def test_projects_without_records_are_dropped(self, example_payload):
        example_payload["proyectos"].append({"id": "P3", "nombre": "Sin gasto", "area": "Mina A", "tipo": "Mejora", "estado": "En ejecución", "region": "Norte", "responsable": "Caro"})
        projects, records = parse_capex_payload(example_payload)
        out = apply_filters(projects, records, CapexFilters(area="Mina A"))
        assert out.projects["id"].tolist() == ["P1"]

    def test_input_order_is_preserved(self, projects, records):
        shuffled = records.iloc[[2, 0, 1]]
        out = apply_filters(projects, shuffled, CapexFilters(anio=2024))
        assert list(out.records.index) == [2, 0, 1]

    def test_empty_dataset(self):
        projects, records = parse_capex_payload({"proyectos": [], "registros": []})
        out = apply_filters(projects, records, CapexFilters(area="Mina A"))
        assert out.records.empty
        assert out.projects.empty


class TestProjectLookup:

    def test_lookup_by_id(self, projects):
        lookup = build_project_lookup(projects)
        assert lookup["P1"]["area"] == "Mina A"
        assert set(lookup) == {"P1", "P2"}

    def test_empty_projects(self):
        assert build_project_lookup(pd.DataFrame()) == {}


class TestFilterOptionLabel:

    def test_wildcard_label(self):
        assert filter_option_label("area", None) == "Todos"

    def test_month_uses_abbreviation(self):
        assert filter_option_label("mes", 3) == "Mar"

    def test_other_fields_use_value(self):
        assert filter_option_label("anio", 2024) == "2024"
        assert filter_option_label("region", "Norte") == "Norte"
