from __future__ import annotations

import logging
import math

import numpy as np
import pandas as pd
from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from api.schemas import CapexFiltersModel, FilterOptionsResponse
from capex.aggregations import TABLE_TOP_N, top_projects
from capex.data import LOAD_ERROR_MESSAGE, DatasetLoadError, load_dashboard_data, prepare_context
from capex.filters import CapexFilters, normalize_filters
from capex.metrics_dashboard import compute_dashboard, ranking_row


app = FastAPI(title="CAPEX Dashboard API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

EXPORT_RECORD_COLUMNS = ["id_proyecto", "anio", "mes", "presupuestado", "ejecutado"]
EXPORT_RANKING_COLUMNS = ["rank", "id", "nombre", "area", "estado", "tipo", "responsable", "presupuestado", "ejecutado", "pct", "status"]


def _filters_from_model(model: CapexFiltersModel) -> CapexFilters:
    return normalize_filters(model.model_dump())


def _json(data: object) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
            },
        )
    )


def _load_failed(exc: DatasetLoadError) -> JSONResponse:
    logger.exception("dataset load failed")
    return JSONResponse(status_code=503, content={"error": LOAD_ERROR_MESSAGE, "detail": str(exc), "type": type(exc).__name__})


def _failed(name: str, exc: Exception) -> JSONResponse:
    logger.exception("%s failed", name)
    return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


@app.get("/meta/options", response_model=FilterOptionsResponse)
def meta_options():
    try:
        data_ctx = load_dashboard_data()
        return _json(data_ctx["options"].to_dict())
    except DatasetLoadError as exc:
        return _load_failed(exc)
    except Exception as exc:
        return _failed("meta_options", exc)


@app.post("/dashboard")
def dashboard(filters: CapexFiltersModel):
    try:
        data_ctx = load_dashboard_data()
        f = _filters_from_model(filters)
        ctx = prepare_context(f, data_ctx)
        return _json(compute_dashboard(f, ctx))
    except DatasetLoadError as exc:
        return _load_failed(exc)
    except Exception as exc:
        return _failed("dashboard", exc)


@app.post("/export/{kind}")
def export(kind: str, filters: CapexFiltersModel):
    try:
        data_ctx = load_dashboard_data()
    except DatasetLoadError as exc:
        return _load_failed(exc)
    f = _filters_from_model(filters)
    ctx = prepare_context(f, data_ctx)

    filename = f"{kind}.csv"
    if kind == "records":
        export_df = ctx["filtered_records"].reindex(columns=EXPORT_RECORD_COLUMNS)
    elif kind == "top-projects":
        rows = [ranking_row(e) for e in top_projects(ctx["filtered_records"], ctx["project_lookup"], n=TABLE_TOP_N)]
        export_df = pd.DataFrame(rows).reindex(columns=EXPORT_RANKING_COLUMNS)
    else:
        export_df = pd.DataFrame()

    csv_bytes = export_df.to_csv(index=False).encode("utf-8")
    return Response(content=csv_bytes, media_type="text/csv", headers={"Content-Disposition": f"attachment; filename={filename}"})
