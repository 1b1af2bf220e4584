"""Shared test fixtures."""

from __future__ import annotations

import json
from pathlib import Path

import pandas as pd
import pytest

from casualty_data import Datasets

INCIDENTS_CSV = """iyear,latitude,longitude,attacktype1,nkill,country_txt
1970,18.45,-66.05,2,1,Puerto Rico
1970,40.71,-74.00,3,250,United States
1970,14.60,120.98,1,,Philippines
1970,52.52,13.40,7,12,Germany
1971,33.89,35.50,3,2000,Lebanon
1971,-34.60,-58.38,6,0,Argentina
1971,51.50,-0.12,3,foo,United Kingdom
"""


@pytest.fixture
def world_geojson() -> dict:
    return {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "properties": {"name": "Square"},
                "geometry": {
                    "type": "Polygon",
                    "coordinates": [[[0, 0], [10, 0], [10, 10], [0, 10], [0, 0]]],
                },
            },
            {
                "type": "Feature",
                "properties": {"name": "Islands"},
                "geometry": {
                    "type": "MultiPolygon",
                    "coordinates": [
                        [[[100, -10], [110, -10], [110, 0], [100, -10]]],
                        [
                            [[120, 20], [130, 20], [130, 30], [120, 20]],
                            [[122, 22], [124, 22], [124, 24], [122, 22]],
                        ],
                    ],
                },
            },
            {"type": "Feature", "properties": {"name": "Nowhere"}, "geometry": None},
        ],
    }


@pytest.fixture
def incidents_csv(tmp_path) -> Path:
    path = tmp_path / "incidents.csv"
    path.write_text(INCIDENTS_CSV, encoding="latin1")
    return path


@pytest.fixture
def geojson_path(tmp_path, world_geojson) -> Path:
    path = tmp_path / "world.geojson"
    path.write_text(json.dumps(world_geojson), encoding="utf-8")
    return path


@pytest.fixture
def incidents() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "year": [1970, 1970, 1970, 1970, 1971, 1971],
            "latitude": [18.45, 40.71, 14.60, 52.52, 33.89, -34.60],
            "longitude": [-66.05, -74.00, 120.98, 13.40, 35.50, -58.38],
            "attacktype": [2, 3, 1, 7, 3, 6],
            "nkill": [1.0, 250.0, 0.0, 12.0, 2000.0, 0.0],
        }
    )


@pytest.fixture
def datasets(world_geojson, incidents) -> Datasets:
    return Datasets(boundaries=world_geojson, incidents=incidents)
