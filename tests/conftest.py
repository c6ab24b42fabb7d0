import json

import pandas as pd
import pytest

from capex.data import parse_capex_payload
from capex.filters import build_project_lookup

EXAMPLE_PAYLOAD = {
    "proyectos": [
        {"id": "P1", "nombre": "Proyecto Uno", "area": "Mina A", "tipo": "Expansión", "estado": "En ejecución", "region": "Norte", "responsable": "Ana"},
        {"id": "P2", "nombre": "Proyecto Dos", "area": "Mina B", "tipo": "Reposición", "estado": "Cerrado", "region": "Sur", "responsable": "Beto"},
    ],
    "registros": [
        {"id_proyecto": "P1", "anio": 2024, "mes": 1, "presupuestado": 1000, "ejecutado": 900},
        {"id_proyecto": "P1", "anio": 2024, "mes": 2, "presupuestado": 500, "ejecutado": 600},
        {"id_proyecto": "P2", "anio": 2024, "mes": 1, "presupuestado": 2000, "ejecutado": 1000},
    ],
}


@pytest.fixture
def example_payload():
    return json.loads(json.dumps(EXAMPLE_PAYLOAD))


@pytest.fixture
def example_data(example_payload):
    projects, records = parse_capex_payload(example_payload)
    return projects, records


@pytest.fixture
def projects(example_data) -> pd.DataFrame:
    return example_data[0]


@pytest.fixture
def records(example_data) -> pd.DataFrame:
    return example_data[1]


@pytest.fixture
def lookup(projects):
    return build_project_lookup(projects)


@pytest.fixture
def dataset_file(tmp_path, example_payload):
    path = tmp_path / "capex_data.json"
    path.write_text(json.dumps(example_payload), encoding="utf-8")
    return path
