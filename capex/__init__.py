"""Core (UI-agnostic) CAPEX dashboard logic.

This package contains:
- data loading (JSON -> pandas)
- filter selection and the filter engine
- aggregations (KPIs, group-by sums, monthly series, top-N ranking)
- the dashboard payload (JSON-serializable)
- chart helpers (Altair -> Vega-Lite spec dict)
"""
