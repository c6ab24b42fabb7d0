import logging
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

import pandas as pd
import streamlit as st

from capex.data import LOAD_ERROR_MESSAGE, DatasetLoadError, FilterOptions, load_dashboard_data, prepare_context
from capex.filters import FILTER_FIELDS, CapexFilters, clear_filters, filter_option_label, set_filter
from capex.metrics_dashboard import compute_dashboard

logger = logging.getLogger(__name__)

FILTERS_STATE_KEY = "capex_filters"
STATUS_ICONS = {"green": "🟢", "yellow": "🟡", "red": "🔴"}
FILTER_LABELS = {
    "anio": "Año",
    "mes": "Mes",
    "area": "Área",
    "tipo": "Tipo de CAPEX",
    "estado": "Estado del proyecto",
    "region": "Región",
}


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;margin-bottom: 8px;}
        .chip-row {display: flex;flex-wrap: wrap;gap: 6px;margin-top: 6px;}
        .chip {background: #f3f4f6;border: 1px solid #e5e7eb;border-radius: 14px;padding: 4px 10px;font-size: 0.85rem;color: #374151;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str):
    container = st.container()
    container.markdown(f"<div class='card-title'>{title}</div>", unsafe_allow_html=True)
    body = container.container()
    with body:
        yield body


def current_filters() -> CapexFilters:
    return st.session_state.get(FILTERS_STATE_KEY) or clear_filters()


def _widget_key(field_name: str) -> str:
    return f"filtro_{field_name}"


def _on_filter_change(field_name: str):
    value = st.session_state.get(_widget_key(field_name))
    st.session_state[FILTERS_STATE_KEY] = set_filter(current_filters(), field_name, value)


def _on_clear_filters():
    st.session_state[FILTERS_STATE_KEY] = clear_filters()
    for name in FILTER_FIELDS:
        st.session_state[_widget_key(name)] = None


def _option_values(options: FilterOptions, field_name: str) -> List[Any]:
    return {
        "anio": options.anios,
        "mes": options.meses,
        "area": options.areas,
        "tipo": options.tipos,
        "estado": options.estados,
        "region": options.regiones,
    }[field_name]


def _option_label(field_name: str):
    def fmt(value: Optional[Any]) -> str:
        return filter_option_label(field_name, value)

    return fmt


def render_filter_sidebar(options: FilterOptions):
    with st.sidebar:
        st.markdown("### Filtros")
        for name in FILTER_FIELDS:
            values: List[Optional[Any]] = [None] + list(_option_values(options, name))
            st.selectbox(
                FILTER_LABELS[name],
                options=values,
                format_func=_option_label(name),
                key=_widget_key(name),
                on_change=_on_filter_change,
                args=(name,),
            )
        st.button("Limpiar filtros", on_click=_on_clear_filters, use_container_width=True)


def render_kpis(kpis: Dict[str, Any]):
    cols = st.columns(4)
    cols[0].metric("CAPEX Presupuestado", kpis["fmt"]["total_presupuestado"])
    cols[1].metric("CAPEX Ejecutado", kpis["fmt"]["total_ejecutado"])
    cols[2].metric("% Ejecución", kpis["fmt"]["pct_ejecucion"])
    cols[3].metric("Proyectos activos", kpis["activos"], help="Proyectos 'En ejecución' dentro de la selección actual.")
    colour = {"over": "#dc2626", "under": "#0f766e"}.get(kpis["budget_status"], "#6b7280")
    st.markdown(f"<div style='font-size:15px;font-weight:600;color:{colour};'>{kpis['fmt']['variance']}</div>", unsafe_allow_html=True)


def render_chart(spec: Optional[Dict[str, Any]], message: str):
    if spec is None:
        st.info(message)
        return
    st.vega_lite_chart(spec, use_container_width=True)


def render_top_table(rows: List[Dict[str, Any]], message: str):
    if not rows:
        st.info(message)
        return
    table = pd.DataFrame(
        [
            {
                "#": r["rank"],
                "Proyecto": f"{r['nombre']} ({r['id']} · {r['area']})",
                "Estado": r["estado_badge"]["label"],
                "Presupuestado": r["fmt"]["presupuestado"],
                "Ejecutado": r["fmt"]["ejecutado"] + (" ▲ SOBRE" if r["sobre_ejec"] else ""),
                "Avance": r["progress_pct"],
                "% Ejec.": f"{STATUS_ICONS[r['status_color']]} {r['fmt']['pct']}",
                "Tipo": r["tipo"],
                "Responsable": r["responsable"],
            }
            for r in rows
        ]
    )
    st.dataframe(
        table,
        hide_index=True,
        use_container_width=True,
        column_config={"Avance": st.column_config.ProgressColumn("Avance", min_value=0, max_value=100, format="%.0f%%")},
    )


# ---------- UI setup ----------
st.set_page_config(page_title="Dashboard CAPEX Minero", layout="wide")
inject_base_styles()
st.title("Dashboard CAPEX Minero")
st.caption("Presupuestado vs ejecutado por proyecto, área y mes.")

try:
    data_ctx = load_dashboard_data()
except DatasetLoadError:
    logger.exception("dataset load failed")
    st.error(LOAD_ERROR_MESSAGE)
    st.stop()

render_filter_sidebar(data_ctx["options"])

filters = current_filters()
ctx = prepare_context(filters, data_ctx)
payload = compute_dashboard(filters, ctx)
no_data = payload["no_data_message"]

if payload["active_filters"]:
    chips = "".join(f"<span class='chip'>🔍 {label}</span>" for label in payload["active_filters"])
    st.markdown(f"<div class='chip-row'>{chips}</div>", unsafe_allow_html=True)

with card("Indicadores"):
    render_kpis(payload["kpis"])

row1 = st.columns(2)
with row1[0]:
    with card("CAPEX por Área Responsable"):
        render_chart(payload["charts"]["by_area"], no_data)
with row1[1]:
    with card("CAPEX Ejecutado por Tipo"):
        render_chart(payload["charts"]["by_tipo"], no_data)

row2 = st.columns(2)
with row2[0]:
    with card("Evolución Mensual"):
        render_chart(payload["charts"]["monthly"], no_data)
with row2[1]:
    with card("Presupuestado vs Ejecutado (Top 8)"):
        render_chart(payload["charts"]["comparison"], no_data)

with card("Top 10 Proyectos por CAPEX Ejecutado"):
    render_top_table(payload["top_projects"], no_data)
