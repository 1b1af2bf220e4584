"""
Loading and cleaning of the two datasets behind the casualties map.

The world boundaries come as a GeoJSON FeatureCollection, the incidents as
the reduced Global Terrorism Database CSV.
"""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, NamedTuple, Union

import numpy as np
import pandas as pd
import requests

log = logging.getLogger(__name__)

WORLD_GEOJSON_URL = "https://raw.githubusercontent.com/holtzy/D3-graph-gallery/master/DATA/world.geojson"
INCIDENTS_CSV_URL = (
    "https://raw.githubusercontent.com/L28-1-n-1-n/L28-1-n-1-n.github.io/master/"
    "globalterrorismdb_0718dist_reduced_version2.csv"
)
INCIDENT_COLUMNS = {
    "iyear": "year",
    "latitude": "latitude",
    "longitude": "longitude",
    "attacktype1": "attacktype",
    "nkill": "nkill",
}
REQUIRED_COLUMNS = ["year", "latitude", "longitude", "attacktype"]
INTEGER_COLUMNS = ["year", "attacktype"]

Source = Union[str, Path]


class DataLoadError(Exception):
    """Either input resource could not be fetched or parsed."""


class Datasets(NamedTuple):
    boundaries: Dict[str, Any]
    incidents: pd.DataFrame


def _is_url(source: Source) -> bool:
    return str(source).startswith(("http://", "https://"))


def load_boundaries(source: Source = WORLD_GEOJSON_URL) -> Dict[str, Any]:
    """Fetch the world GeoJSON from a URL or read it from a local path."""
    try:
        if _is_url(source):
            response = requests.get(str(source))
            response.raise_for_status()
            payload = response.json()
        else:
            with open(source, encoding="utf-8") as geo_file:
                payload = json.load(geo_file)
    except (requests.RequestException, OSError, ValueError) as exc:
        raise DataLoadError(f"could not load boundaries from {source}") from exc

    if not isinstance(payload, dict) or payload.get("type") != "FeatureCollection":
        raise DataLoadError(f"{source} is not a GeoJSON FeatureCollection")
    log.info("Loaded %d boundary features from %s", len(payload.get("features", [])), source)
    return payload


def clean_incidents(raw: pd.DataFrame) -> pd.DataFrame:
    """Coerce the raw string columns into the typed incident frame.

    Missing, non-numeric or infinite kill counts count as zero. Rows without
    a usable year, position or attack type cannot be placed and are dropped;
    fractional years and attack types are not usable.
    """
    df = raw.rename(columns=INCIDENT_COLUMNS)
    for column in INCIDENT_COLUMNS.values():
        df[column] = pd.to_numeric(df[column], errors="coerce").replace([np.inf, -np.inf], np.nan)
    df["nkill"] = df["nkill"].fillna(0).clip(lower=0).astype(float)

    valid = df[REQUIRED_COLUMNS].notna().all(axis=1)
    for column in INTEGER_COLUMNS:
        valid &= (df[column] % 1 == 0)
    dropped = int((~valid).sum())
    if dropped:
        log.warning("Dropped %d incident rows without a usable year, position or attack type", dropped)

    df = df.loc[valid, list(INCIDENT_COLUMNS.values())]
    df = df.astype({"year": int, "attacktype": int, "latitude": float, "longitude": float})
    return df.reset_index(drop=True)


def load_incidents(source: Source = INCIDENTS_CSV_URL) -> pd.DataFrame:
    """Read the incident CSV and return the cleaned frame."""
    try:
        raw = pd.read_csv(
            source,
            usecols=list(INCIDENT_COLUMNS),
            dtype=str,
            keep_default_na=False,
            encoding="latin1",
        )
    except (OSError, ValueError) as exc:
        raise DataLoadError(f"could not load incidents from {source}") from exc

    incidents = clean_incidents(raw)
    log.info("Loaded %d incidents from %s", len(incidents), source)
    return incidents


@lru_cache(maxsize=1)
def load_datasets(
    boundary_source: Source = WORLD_GEOJSON_URL,
    incident_source: Source = INCIDENTS_CSV_URL,
) -> Datasets:
    """Load both resources; either both arrive or a DataLoadError is raised."""
    boundaries = load_boundaries(boundary_source)
    incidents = load_incidents(incident_source)
    return Datasets(boundaries=boundaries, incidents=incidents)
