from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Tuple

import pandas as pd

MONTH_LABELS = ["", "Ene", "Feb", "Mar", "Abr", "May", "Jun", "Jul", "Ago", "Sep", "Oct", "Nov", "Dic"]

ESTADO_EN_EJECUCION = "En ejecución"

STATE_BADGES = {
    "En ejecución": "status-activo",
    "Cerrado": "status-cerrado",
    "Pausado": "status-pausado",
    "En planificación": "status-plan",
}
DEFAULT_BADGE = "status-cerrado"


def month_label(month: object) -> str:
    try:
        m = int(month)  # type: ignore[arg-type]
    except Exception:
        return str(month)
    if 1 <= m <= 12:
        return MONTH_LABELS[m]
    return str(m)


def round_half_up(value: object, ndigits: int = 0) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    q = Decimal(10) ** -ndigits
    # floats round on their exact binary value, like JS toFixed
    exact = Decimal(value) if isinstance(value, (int, float)) else Decimal(str(value))
    return float(exact.quantize(q, rounding=ROUND_HALF_UP))


def fmt_usd(value: object) -> str:
    """Compact currency: ``$X.XM`` from one million, ``$XK`` from one thousand, else ``$X``."""
    if value is None or pd.isna(value):
        return "N/A"
    v = float(value)  # type: ignore[arg-type]
    if v >= 1_000_000:
        return f"${round_half_up(v / 1_000_000, 1):.1f}M"
    if v >= 1_000:
        return f"${round_half_up(v / 1_000):.0f}K"
    return f"${round_half_up(v):.0f}"


def fmt_pct(value: object) -> str:
    if value is None or pd.isna(value):
        return "N/A"
    return f"{round_half_up(value, 1):.1f}%"


def variance_caption(variance: float) -> str:
    if variance > 0:
        return f"▲ {fmt_usd(abs(variance))} sobre presupuesto"
    if variance < 0:
        return f"▼ {fmt_usd(abs(variance))} bajo presupuesto"
    return "Exactamente en presupuesto"


def state_badge(estado: Optional[str]) -> Tuple[str, str]:
    """Return ``(css_class, label)`` for a project state; unknown states keep their label."""
    label = estado if isinstance(estado, str) else ""
    return STATE_BADGES.get(label, DEFAULT_BADGE), label
