from __future__ import annotations

from typing import List, Optional, Union

from pydantic import BaseModel


class CapexFiltersModel(BaseModel):
    anio: Optional[Union[int, str]] = None
    mes: Optional[Union[int, str]] = None
    area: Optional[str] = None
    tipo: Optional[str] = None
    estado: Optional[str] = None
    region: Optional[str] = None


class MonthOptionModel(BaseModel):
    value: int
    label: str


class FilterOptionsResponse(BaseModel):
    anios: List[int]
    meses: List[MonthOptionModel]
    areas: List[str]
    tipos: List[str]
    estados: List[str]
    regiones: List[str]
