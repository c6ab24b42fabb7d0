"""Pure aggregations over a filtered record set.

Every function here takes the filtered records (and, where display attributes
are needed, the project lookup) and returns plain frozen dataclasses. None of
them keep state between calls, and all of them return a well-formed zero/empty
result for an empty record set.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional

import pandas as pd

from capex.formatting import ESTADO_EN_EJECUCION, month_label

TABLE_TOP_N = 10
CHART_TOP_N = 8
NA_GROUP = "N/A"

STATUS_ON_TRACK = "on-track"
STATUS_AT_RISK = "at-risk"
STATUS_IN_PROGRESS = "in-progress"
STATUS_COLORS = {STATUS_ON_TRACK: "green", STATUS_AT_RISK: "red", STATUS_IN_PROGRESS: "yellow"}

BUDGET_OVER = "over"
BUDGET_UNDER = "under"
BUDGET_ON = "on-budget"

ProjectLookup = Mapping[str, Mapping[str, Any]]


@dataclass(frozen=True)
class StatusThresholds:
    on_track_pct: float = 90.0
    at_risk_pct: float = 50.0


@dataclass(frozen=True)
class KpiTotals:
    total_presupuestado: float
    total_ejecutado: float
    pct_ejecucion: float
    activos: int
    variance: float
    budget_status: str


@dataclass(frozen=True)
class GroupTotals:
    group: str
    presupuestado: float
    ejecutado: float


@dataclass(frozen=True)
class MonthBucket:
    key: str
    label: str
    anio: int
    mes: int
    presupuestado: float
    ejecutado: float


@dataclass(frozen=True)
class RankingEntry:
    rank: int
    id: str
    nombre: str
    area: str
    tipo: str
    estado: str
    region: str
    responsable: str
    presupuestado: float
    ejecutado: float
    pct: float
    sobre_ejec: bool
    status: str

    @property
    def progress_pct(self) -> float:
        return min(self.pct, 100.0)


def _attr(project: Optional[Mapping[str, Any]], name: str) -> Optional[str]:
    if not project:
        return None
    value = project.get(name)
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    return str(value)


class GroupDimension(str, Enum):
    AREA = "area"
    TIPO = "tipo"
    ESTADO = "estado"
    REGION = "region"


_DIMENSION_ACCESSORS: Dict[GroupDimension, Callable[[Optional[Mapping[str, Any]]], Optional[str]]] = {
    GroupDimension.AREA: lambda p: _attr(p, "area"),
    GroupDimension.TIPO: lambda p: _attr(p, "tipo"),
    GroupDimension.ESTADO: lambda p: _attr(p, "estado"),
    GroupDimension.REGION: lambda p: _attr(p, "region"),
}


def safe_pct(numerator: float, denominator: float) -> float:
    return float(numerator / denominator * 100) if denominator > 0 else 0.0


def budget_status(variance: float) -> str:
    if variance > 0:
        return BUDGET_OVER
    if variance < 0:
        return BUDGET_UNDER
    return BUDGET_ON


def classify_status(pct: float, sobre_ejec: bool, thresholds: StatusThresholds = StatusThresholds()) -> str:
    """Over-execution is always at-risk, whatever the percentage band."""
    if pct >= thresholds.on_track_pct and not sobre_ejec:
        return STATUS_ON_TRACK
    if sobre_ejec or pct < thresholds.at_risk_pct:
        return STATUS_AT_RISK
    return STATUS_IN_PROGRESS


def compute_kpis(records: pd.DataFrame, projects: pd.DataFrame) -> KpiTotals:
    """KPI totals; ``projects`` is the filtered project set."""
    if records.empty:
        total_pres = 0.0
        total_ejec = 0.0
    else:
        total_pres = float(records["presupuestado"].sum())
        total_ejec = float(records["ejecutado"].sum())

    activos = 0
    if not projects.empty and "estado" in projects.columns:
        activos = int((projects["estado"] == ESTADO_EN_EJECUCION).sum())

    variance = total_ejec - total_pres
    return KpiTotals(
        total_presupuestado=total_pres,
        total_ejecutado=total_ejec,
        pct_ejecucion=safe_pct(total_ejec, total_pres),
        activos=activos,
        variance=variance,
        budget_status=budget_status(variance),
    )


def group_by_dimension(records: pd.DataFrame, lookup: ProjectLookup, dimension: GroupDimension) -> Dict[str, GroupTotals]:
    """Sum both amounts per project attribute, keyed in first-seen order.

    Records whose project (or project attribute) is missing land in ``N/A``.
    """
    if records.empty:
        return {}
    accessor = _DIMENSION_ACCESSORS[GroupDimension(dimension)]
    keys = records["id_proyecto"].map(lambda pid: accessor(lookup.get(pid)) or NA_GROUP)
    sums = (
        records.assign(_group=keys)
        .groupby("_group", sort=False)[["presupuestado", "ejecutado"]]
        .sum()
    )
    return {
        str(group): GroupTotals(group=str(group), presupuestado=float(row["presupuestado"]), ejecutado=float(row["ejecutado"]))
        for group, row in sums.iterrows()
    }


def monthly_series(records: pd.DataFrame) -> List[MonthBucket]:
    """Month buckets in ascending ``YYYY-MM`` order, across year boundaries."""
    if records.empty:
        return []
    keyed = records.assign(
        _key=[f"{int(a)}-{int(m):02d}" for a, m in zip(records["anio"], records["mes"])]
    )
    sums = (
        keyed.groupby("_key", sort=False)
        .agg(anio=("anio", "first"), mes=("mes", "first"), presupuestado=("presupuestado", "sum"), ejecutado=("ejecutado", "sum"))
        .sort_index()
    )
    return [
        MonthBucket(
            key=str(key),
            label=f"{month_label(row['mes'])} {int(row['anio'])}",
            anio=int(row["anio"]),
            mes=int(row["mes"]),
            presupuestado=float(row["presupuestado"]),
            ejecutado=float(row["ejecutado"]),
        )
        for key, row in sums.iterrows()
    ]


def top_projects(
    records: pd.DataFrame,
    lookup: ProjectLookup,
    n: int = TABLE_TOP_N,
    thresholds: StatusThresholds = StatusThresholds(),
) -> List[RankingEntry]:
    """Projects ranked by summed ``ejecutado`` (descending, ties in first-seen order)."""
    if records.empty or n <= 0:
        return []
    sums = (
        records.groupby("id_proyecto", sort=False)[["presupuestado", "ejecutado"]]
        .sum()
        .sort_values("ejecutado", ascending=False, kind="stable")
        .head(n)
    )
    ranking: List[RankingEntry] = []
    for rank, (pid, row) in enumerate(sums.iterrows(), start=1):
        pid = str(pid)
        project = lookup.get(pid)
        pres = float(row["presupuestado"])
        ejec = float(row["ejecutado"])
        pct = safe_pct(ejec, pres)
        sobre = ejec > pres
        ranking.append(
            RankingEntry(
                rank=rank,
                id=pid,
                nombre=_attr(project, "nombre") or pid,
                area=_attr(project, "area") or "",
                tipo=_attr(project, "tipo") or "",
                estado=_attr(project, "estado") or "",
                region=_attr(project, "region") or "",
                responsable=_attr(project, "responsable") or "",
                presupuestado=pres,
                ejecutado=ejec,
                pct=pct,
                sobre_ejec=sobre,
                status=classify_status(pct, sobre, thresholds),
            )
        )
    return ranking
