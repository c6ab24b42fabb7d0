from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any, Dict, List, Mapping, Optional, Tuple

import pandas as pd

from capex.formatting import month_label

FILTER_FIELDS: Tuple[str, ...] = ("anio", "mes", "area", "tipo", "estado", "region")
RECORD_FILTER_FIELDS: Tuple[str, ...] = ("anio", "mes")
PROJECT_FILTER_FIELDS: Tuple[str, ...] = ("area", "tipo", "estado", "region")

PROJECT_COLUMNS: List[str] = ["id", "nombre", "area", "tipo", "estado", "region", "responsable"]
RECORD_COLUMNS: List[str] = ["id_proyecto", "anio", "mes", "presupuestado", "ejecutado"]

ALL_LABEL = "Todos"


@dataclass(frozen=True)
class CapexFilters:
    """Current query. ``None`` on a field means no constraint."""

    anio: Optional[int] = None
    mes: Optional[int] = None
    area: Optional[str] = None
    tipo: Optional[str] = None
    estado: Optional[str] = None
    region: Optional[str] = None

    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))


@dataclass(frozen=True)
class FilteredData:
    records: pd.DataFrame
    projects: pd.DataFrame


def _as_int(value: object) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(str(value).strip())
    except Exception:
        return None


def _as_str(value: object) -> Optional[str]:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def _normalize_value(field_name: str, value: object) -> Any:
    if field_name in RECORD_FILTER_FIELDS:
        return _as_int(value)
    return _as_str(value)


def normalize_filters(raw: Mapping[str, object] | CapexFilters | None) -> CapexFilters:
    if isinstance(raw, CapexFilters):
        return raw
    raw = raw or {}
    return CapexFilters(**{name: _normalize_value(name, raw.get(name)) for name in FILTER_FIELDS})


def set_filter(filters: CapexFilters, field_name: str, value: object) -> CapexFilters:
    """Return a copy of ``filters`` with one field replaced; an empty value clears it."""
    if field_name not in FILTER_FIELDS:
        raise ValueError(f"Unknown filter field: {field_name!r}")
    return replace(filters, **{field_name: _normalize_value(field_name, value)})


def clear_filters() -> CapexFilters:
    return CapexFilters()


def filter_option_label(field_name: str, value: object) -> str:
    """Display text for one select option; ``None`` is the wildcard."""
    if value is None:
        return ALL_LABEL
    if field_name == "mes":
        return month_label(value)
    return str(value)


def active_filter_labels(filters: CapexFilters) -> List[str]:
    labels = {
        "anio": f"Año: {filters.anio}" if filters.anio is not None else None,
        "mes": f"Mes: {month_label(filters.mes)}" if filters.mes is not None else None,
        "area": f"Área: {filters.area}" if filters.area else None,
        "tipo": f"Tipo: {filters.tipo}" if filters.tipo else None,
        "estado": f"Estado: {filters.estado}" if filters.estado else None,
        "region": f"Región: {filters.region}" if filters.region else None,
    }
    return [labels[name] for name in FILTER_FIELDS if labels[name]]


def build_project_lookup(projects: pd.DataFrame) -> Dict[str, Dict[str, Any]]:
    """Map project id -> project row (as a dict). Later duplicates win."""
    if projects.empty or "id" not in projects.columns:
        return {}
    lookup: Dict[str, Dict[str, Any]] = {}
    for row in projects.to_dict(orient="records"):
        lookup[str(row["id"])] = row
    return lookup


def apply_filters(projects: pd.DataFrame, records: pd.DataFrame, filters: CapexFilters) -> FilteredData:
    """Filter records by the AND of every set field.

    Record fields (anio, mes) are compared on the record itself; project fields
    are compared on the joined project. Records whose ``id_proyecto`` has no
    project are always dropped. Input order is preserved for both outputs.
    """
    if records.empty or projects.empty or "id" not in projects.columns:
        return FilteredData(records=records.iloc[0:0], projects=projects.iloc[0:0])

    proj_by_id = projects.drop_duplicates(subset=["id"], keep="last").set_index("id")
    project_ids = records["id_proyecto"]

    mask = project_ids.isin(proj_by_id.index)
    for name in RECORD_FILTER_FIELDS:
        value = getattr(filters, name)
        if value is not None:
            mask &= records[name] == value
    for name in PROJECT_FILTER_FIELDS:
        value = getattr(filters, name)
        if value is None:
            continue
        if name not in proj_by_id.columns:
            mask &= False
            continue
        mask &= project_ids.map(proj_by_id[name]) == value

    filtered_records = records[mask]
    referenced = set(filtered_records["id_proyecto"])
    filtered_projects = projects[projects["id"].isin(referenced)]
    return FilteredData(records=filtered_records, projects=filtered_projects)
