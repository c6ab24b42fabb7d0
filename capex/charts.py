from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

import altair as alt
import pandas as pd

from capex.aggregations import GroupTotals, MonthBucket, RankingEntry

alt.data_transformers.disable_max_rows()

GOLD = "#fab93c"
TEAL = "#2dd4bf"
RED = "#f87171"
PALETTE = [GOLD, TEAL, "#fb923c", RED, "#60a5fa", "#a78bfa", "#34d399", "#f472b6", "#94a3b8", "#fbbf24"]

PRESUPUESTADO = "Presupuestado"
EJECUTADO = "Ejecutado"
SOBRE_EJECUTADO = "Sobre-ejecutado"


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def _long_groups(groups: Iterable[GroupTotals]) -> pd.DataFrame:
    rows: List[Dict[str, Any]] = []
    for g in groups:
        rows.append({"grupo": g.group, "medida": PRESUPUESTADO, "monto": g.presupuestado})
        rows.append({"grupo": g.group, "medida": EJECUTADO, "monto": g.ejecutado})
    return pd.DataFrame(rows)


def area_bar_chart(groups: List[GroupTotals]) -> Optional[alt.Chart]:
    if not groups:
        return None
    df = _long_groups(groups)
    return (
        alt.Chart(df)
        .mark_bar(cornerRadiusEnd=4)
        .encode(
            y=alt.Y("grupo:N", title=None, sort=[g.group for g in groups]),
            x=alt.X("monto:Q", title=None, axis=alt.Axis(format="$~s")),
            yOffset=alt.YOffset("medida:N", sort=[PRESUPUESTADO, EJECUTADO]),
            color=alt.Color("medida:N", title=None, scale=alt.Scale(domain=[PRESUPUESTADO, EJECUTADO], range=[GOLD, TEAL])),
            tooltip=["grupo", "medida", alt.Tooltip("monto:Q", format="$,.0f")],
        )
        .properties(height=260)
    )


def tipo_donut_chart(groups: List[GroupTotals]) -> Optional[alt.Chart]:
    if not groups:
        return None
    df = pd.DataFrame([{"grupo": g.group, "ejecutado": g.ejecutado} for g in groups])
    return (
        alt.Chart(df)
        .mark_arc(innerRadius=60)
        .encode(
            theta=alt.Theta("ejecutado:Q"),
            color=alt.Color("grupo:N", title=None, scale=alt.Scale(domain=[g.group for g in groups], range=PALETTE[: len(groups)])),
            tooltip=["grupo", alt.Tooltip("ejecutado:Q", format="$,.0f")],
        )
        .properties(height=260)
    )


def monthly_line_chart(buckets: List[MonthBucket]) -> Optional[alt.Chart]:
    if not buckets:
        return None
    rows: List[Dict[str, Any]] = []
    for b in buckets:
        rows.append({"periodo": b.label, "medida": f"CAPEX {EJECUTADO}", "monto": b.ejecutado})
        rows.append({"periodo": b.label, "medida": f"CAPEX {PRESUPUESTADO}", "monto": b.presupuestado})
    df = pd.DataFrame(rows)
    return (
        alt.Chart(df)
        .mark_line(point=True, interpolate="monotone")
        .encode(
            x=alt.X("periodo:N", title=None, sort=[b.label for b in buckets]),
            y=alt.Y("monto:Q", title=None, axis=alt.Axis(format="$~s")),
            color=alt.Color(
                "medida:N",
                title=None,
                scale=alt.Scale(domain=[f"CAPEX {EJECUTADO}", f"CAPEX {PRESUPUESTADO}"], range=[TEAL, GOLD]),
            ),
            strokeDash=alt.StrokeDash(
                "medida:N",
                scale=alt.Scale(domain=[f"CAPEX {EJECUTADO}", f"CAPEX {PRESUPUESTADO}"], range=[[1, 0], [5, 4]]),
                legend=None,
            ),
            tooltip=["periodo", "medida", alt.Tooltip("monto:Q", format="$,.0f")],
        )
        .properties(height=260)
    )


def budget_comparison_chart(entries: List[RankingEntry]) -> Optional[alt.Chart]:
    """Budget vs executed per project; executed bars over budget are highlighted."""
    if not entries:
        return None
    rows: List[Dict[str, Any]] = []
    for e in entries:
        rows.append({"proyecto": e.id, "medida": PRESUPUESTADO, "monto": e.presupuestado})
        rows.append({"proyecto": e.id, "medida": SOBRE_EJECUTADO if e.sobre_ejec else EJECUTADO, "monto": e.ejecutado})
    df = pd.DataFrame(rows)
    return (
        alt.Chart(df)
        .mark_bar(cornerRadiusEnd=4)
        .encode(
            x=alt.X("proyecto:N", title=None, sort=[e.id for e in entries]),
            y=alt.Y("monto:Q", title=None, axis=alt.Axis(format="$~s")),
            xOffset=alt.XOffset("tipo_barra:N"),
            color=alt.Color(
                "medida:N",
                title=None,
                scale=alt.Scale(domain=[PRESUPUESTADO, EJECUTADO, SOBRE_EJECUTADO], range=[GOLD, TEAL, RED]),
            ),
            tooltip=["proyecto", "medida", alt.Tooltip("monto:Q", format="$,.0f")],
        )
        .transform_calculate(tipo_barra=f"datum.medida == '{PRESUPUESTADO}' ? 'a' : 'b'")
        .properties(height=260)
    )
