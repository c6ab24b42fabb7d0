from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List

import pandas as pd

from capex.aggregations import (
    CHART_TOP_N,
    STATUS_COLORS,
    TABLE_TOP_N,
    GroupDimension,
    RankingEntry,
    compute_kpis,
    group_by_dimension,
    monthly_series,
    top_projects,
)
from capex.charts import (
    area_bar_chart,
    budget_comparison_chart,
    monthly_line_chart,
    tipo_donut_chart,
    to_vega_spec,
)
from capex.filters import CapexFilters, active_filter_labels
from capex.formatting import fmt_pct, fmt_usd, round_half_up, state_badge, variance_caption

NO_DATA_MESSAGE = "Sin datos para los filtros seleccionados"


def _spec(chart) -> Any:
    return to_vega_spec(chart) if chart is not None else None


def ranking_row(entry: RankingEntry) -> Dict[str, Any]:
    badge_class, badge_label = state_badge(entry.estado)
    row = asdict(entry)
    row.update(
        {
            "progress_pct": entry.progress_pct,
            "status_color": STATUS_COLORS[entry.status],
            "estado_badge": {"class": badge_class, "label": badge_label},
            "fmt": {
                "presupuestado": fmt_usd(entry.presupuestado),
                "ejecutado": fmt_usd(entry.ejecutado),
                "pct": f"{round_half_up(entry.pct):.0f}%",
            },
        }
    )
    return row


def compute_dashboard(filters: CapexFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    records: pd.DataFrame = ctx.get("filtered_records", pd.DataFrame())
    projects: pd.DataFrame = ctx.get("filtered_projects", pd.DataFrame())
    lookup = ctx.get("project_lookup", {}) or {}

    kpis = compute_kpis(records, projects)
    by_area = list(group_by_dimension(records, lookup, GroupDimension.AREA).values())
    by_tipo = list(group_by_dimension(records, lookup, GroupDimension.TIPO).values())
    monthly = monthly_series(records)
    ranking = top_projects(records, lookup, n=TABLE_TOP_N)
    comparison = ranking[:CHART_TOP_N]

    top_rows: List[Dict[str, Any]] = [ranking_row(e) for e in ranking]

    return {
        "filters": asdict(filters),
        "active_filters": active_filter_labels(filters),
        "has_data": not records.empty,
        "no_data_message": NO_DATA_MESSAGE,
        "kpis": {
            **asdict(kpis),
            "fmt": {
                "total_presupuestado": fmt_usd(kpis.total_presupuestado),
                "total_ejecutado": fmt_usd(kpis.total_ejecutado),
                "pct_ejecucion": fmt_pct(kpis.pct_ejecucion),
                "variance": variance_caption(kpis.variance),
            },
        },
        "by_area": [asdict(g) for g in by_area],
        "by_tipo": [asdict(g) for g in by_tipo],
        "monthly": [asdict(b) for b in monthly],
        "top_projects": top_rows,
        "comparison": top_rows[:CHART_TOP_N],
        "charts": {
            "by_area": _spec(area_bar_chart(by_area)),
            "by_tipo": _spec(tipo_donut_chart(by_tipo)),
            "monthly": _spec(monthly_line_chart(monthly)),
            "comparison": _spec(budget_comparison_chart(comparison)),
        },
    }
