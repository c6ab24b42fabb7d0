from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pandas as pd

from capex.filters import (
    PROJECT_COLUMNS,
    RECORD_COLUMNS,
    CapexFilters,
    apply_filters,
    build_project_lookup,
    normalize_filters,
)
from capex.formatting import month_label

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).resolve().parents[1] / "data"
DATA_FILE_NAME = "capex_data.json"
DATA_FILE_ENV = "CAPEX_DATA_FILE"

PROJECTS_KEY = "proyectos"
RECORDS_KEY = "registros"
AMOUNT_COLUMNS = ["presupuestado", "ejecutado"]

LOAD_ERROR_MESSAGE = "No se pudieron cargar los datos."


class DatasetLoadError(Exception):
    """The dataset could not be fetched or parsed; nothing can be shown."""


@dataclass(frozen=True)
class FilterOptions:
    anios: List[int] = field(default_factory=list)
    meses: List[int] = field(default_factory=list)
    areas: List[str] = field(default_factory=list)
    tipos: List[str] = field(default_factory=list)
    estados: List[str] = field(default_factory=list)
    regiones: List[str] = field(default_factory=list)

    def month_options(self) -> List[Dict[str, object]]:
        return [{"value": m, "label": month_label(m)} for m in self.meses]

    def to_dict(self) -> Dict[str, object]:
        out = asdict(self)
        out["meses"] = self.month_options()
        return out


def get_data_file() -> Path:
    override = os.environ.get(DATA_FILE_ENV, "").strip()
    return Path(override) if override else DATA_DIR / DATA_FILE_NAME


def file_signature(path: Path) -> Tuple[str, float]:
    try:
        return str(path), path.stat().st_mtime
    except OSError as exc:
        raise DatasetLoadError(f"Dataset not found: {path}") from exc


def _collection(payload: dict, key: str) -> list:
    value = payload.get(key)
    if not isinstance(value, list):
        raise DatasetLoadError(f"Dataset is missing the '{key}' collection")
    return value


def coerce_projects(raw: list) -> pd.DataFrame:
    df = pd.DataFrame([r for r in raw if isinstance(r, dict)])
    for col in PROJECT_COLUMNS:
        if col not in df.columns:
            df[col] = None
    df = df[PROJECT_COLUMNS].astype(object)
    df = df.where(pd.notna(df), None)
    df = df[df["id"].notna()].copy()
    df["id"] = df["id"].astype(str).str.strip()
    df = df[df["id"] != ""]
    before = len(df)
    df = df.drop_duplicates(subset=["id"], keep="last").reset_index(drop=True)
    if len(df) != before:
        logger.warning("Dropped %d duplicate project ids", before - len(df))
    return df


def coerce_records(raw: list) -> pd.DataFrame:
    df = pd.DataFrame([r for r in raw if isinstance(r, dict)])
    for col in RECORD_COLUMNS:
        if col not in df.columns:
            df[col] = None
    df = df[RECORD_COLUMNS].copy()
    df["id_proyecto"] = df["id_proyecto"].astype(object).where(df["id_proyecto"].notna(), None)
    df["id_proyecto"] = df["id_proyecto"].map(lambda v: str(v).strip() if v is not None else "")
    for col in ["anio", "mes"]:
        df[col] = pd.to_numeric(df[col], errors="coerce")
    for col in AMOUNT_COLUMNS:
        df[col] = pd.to_numeric(df[col], errors="coerce").fillna(0.0).astype(float)

    valid = df["anio"].notna() & df["mes"].notna() & df["mes"].between(1, 12)
    dropped = int((~valid).sum())
    if dropped:
        logger.warning("Dropped %d expenditure records with an invalid year/month", dropped)
    df = df[valid].reset_index(drop=True)
    df["anio"] = df["anio"].astype(int)
    df["mes"] = df["mes"].astype(int)
    return df


def parse_capex_payload(payload: object) -> Tuple[pd.DataFrame, pd.DataFrame]:
    if not isinstance(payload, dict):
        raise DatasetLoadError("Dataset root must be an object")
    projects = coerce_projects(_collection(payload, PROJECTS_KEY))
    records = coerce_records(_collection(payload, RECORDS_KEY))
    return projects, records


def load_capex_dataset(path: Path) -> Tuple[pd.DataFrame, pd.DataFrame]:
    try:
        with open(path, encoding="utf-8") as fh:
            payload = json.load(fh)
    except (OSError, ValueError) as exc:
        raise DatasetLoadError(f"Could not read dataset {path}: {exc}") from exc
    projects, records = parse_capex_payload(payload)
    logger.info("Loaded %d projects and %d expenditure records from %s", len(projects), len(records), path)
    return projects, records


def _sorted_unique(series: pd.Series, cast=str) -> list:
    return sorted({cast(v) for v in series.tolist() if v is not None and not pd.isna(v)})


def derive_filter_options(projects: pd.DataFrame, records: pd.DataFrame) -> FilterOptions:
    """Options come from the unfiltered dataset so they never shrink."""
    return FilterOptions(
        anios=_sorted_unique(records["anio"], int) if not records.empty else [],
        meses=_sorted_unique(records["mes"], int) if not records.empty else [],
        areas=_sorted_unique(projects["area"]) if not projects.empty else [],
        tipos=_sorted_unique(projects["tipo"]) if not projects.empty else [],
        estados=_sorted_unique(projects["estado"]) if not projects.empty else [],
        regiones=_sorted_unique(projects["region"]) if not projects.empty else [],
    )


# ---------------- Public API (Streamlit + FastAPI) ----------------
@lru_cache(maxsize=4)
def _load_dashboard_data_cached(file_sig: Tuple[str, float]) -> Dict[str, object]:
    path = Path(file_sig[0])
    projects, records = load_capex_dataset(path)
    return {
        "source": str(path),
        "projects": projects,
        "records": records,
        "options": derive_filter_options(projects, records),
    }


def load_dashboard_data(path: Optional[Path] = None) -> Dict[str, object]:
    """Load (once per file version) the dataset; raises ``DatasetLoadError``."""
    return _load_dashboard_data_cached(file_signature(path or get_data_file()))


def prepare_context(filters: dict | CapexFilters | None, data_ctx: Dict[str, object]) -> Dict[str, object]:
    projects: pd.DataFrame = data_ctx.get("projects", pd.DataFrame(columns=PROJECT_COLUMNS))
    records: pd.DataFrame = data_ctx.get("records", pd.DataFrame(columns=RECORD_COLUMNS))
    filt = normalize_filters(filters)

    filtered = apply_filters(projects, records, filt)
    return {
        "filters": filt,
        "filtered_records": filtered.records,
        "filtered_projects": filtered.projects,
        "project_lookup": build_project_lookup(projects),
        "options": data_ctx.get("options") or derive_filter_options(projects, records),
    }
