"""
Scene model for the casualties map: projection, scales, year navigation and
the legend hover state.

Everything here is independent of Bokeh models so that a scene is a pure
function of the incident frame and the year on display.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Hashable, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from bokeh.palettes import Paired

WIDTH = 1945
HEIGHT = 1500
YEAR_MIN = 1970
YEAR_MAX = 2017

PROJECTION_CENTER = (160.0, -75.0)
PROJECTION_SCALE = 150.0
PROJECTION_TRANSLATE = (WIDTH / 2, HEIGHT / 2)
MERCATOR_MAX_LAT = 85.0511287798

SIZE_RANGE = (1.0, 100.0)
CATEGORY_PALETTE = Paired[12]
CIRCLE_ALPHA = 0.4
HIGHLIGHT_THRESHOLD = 200
HIGHLIGHT_COLOR = "black"

LEGEND_SIZES = (100, 500, 1000, 2000)
SIZE_KEY_X = WIDTH - 1800
SIZE_KEY_BASELINE = HEIGHT - 800
SIZE_KEY_LABEL_X = WIDTH / 3 + 100 - 400

SWATCH_X = 1200
SWATCH_WIDTH = 10
SWATCH_HEIGHT = 30
SWATCH_LABEL_X = 1170
SWATCH_IDLE_ALPHA = 0.4
SWATCH_HOVER_ALPHA = 1.0

# (GTD attacktype1 code, display name, stable key, y offset); names follow the
# GTD codebook, where code 9 is "Unknown".
ATTACK_TYPES = [
    (1, "Assassination", "assassination", 30),
    (6, "Hostage Taking (Kidnapping)", "kidnapping", 60),
    (3, "Bombing/Explosion", "bombing", 90),
    (7, "Facility/Infrastructure Attack", "infrastructure", 120),
    (2, "Armed Assault", "armed-assault", 150),
    (4, "Hijacking", "hijacking", 180),
    (9, "Unknown", "unknown", 210),
    (8, "Unarmed Assault", "unarmed-assault", 240),
    (5, "Hostage Taking (Barricade Incident)", "barricade", 270),
]

NAVIGATION_STEPS = {"ArrowLeft": -1, "ArrowRight": 1}


def _mercator_raw(lon, lat) -> Tuple[np.ndarray, np.ndarray]:
    lam = np.radians(np.asarray(lon, dtype=float))
    phi = np.radians(np.clip(np.asarray(lat, dtype=float), -MERCATOR_MAX_LAT, MERCATOR_MAX_LAT))
    return lam, np.log(np.tan((math.pi / 2 + phi) / 2))


class MercatorProjection:
    """Mercator projection onto canvas pixels, y growing downward.

    The projection is positioned so that ``center`` (lon, lat) lands on
    ``translate``, which is how d3's geoMercator places a centred map.
    """

    def __init__(
        self,
        center: Tuple[float, float] = PROJECTION_CENTER,
        scale: float = PROJECTION_SCALE,
        translate: Tuple[float, float] = PROJECTION_TRANSLATE,
    ) -> None:
        self.center = center
        self.scale = scale
        self.translate = translate
        center_x, center_y = _mercator_raw(*center)
        self._dx = translate[0] - scale * float(center_x)
        self._dy = translate[1] + scale * float(center_y)

    def __call__(self, lon, lat) -> Tuple[np.ndarray, np.ndarray]:
        lam, y = _mercator_raw(lon, lat)
        return self._dx + self.scale * lam, self._dy - self.scale * y


class SqrtScale:
    """Square-root scale clamped to its domain, so area grows linearly."""

    def __init__(self, domain: Tuple[float, float], range_: Tuple[float, float] = SIZE_RANGE) -> None:
        self.domain = (float(domain[0]), float(domain[1]))
        self.range = (float(range_[0]), float(range_[1]))

    def __call__(self, values):
        lo, hi = self.domain
        r0, r1 = self.range
        clipped = np.clip(np.asarray(values, dtype=float), lo, hi)
        if hi == lo:
            result = np.full_like(clipped, (r0 + r1) / 2)
        else:
            t = (np.sqrt(clipped) - math.sqrt(lo)) / (math.sqrt(hi) - math.sqrt(lo))
            result = r0 + (r1 - r0) * t
        if result.ndim == 0:
            return float(result)
        return result


class OrdinalColorScale:
    """Category to colour mapping; unseen categories join the domain."""

    def __init__(self, domain: Iterable[Hashable], palette: Sequence[str] = CATEGORY_PALETTE) -> None:
        self.palette = list(palette)
        self._index: Dict[Hashable, int] = {}
        for value in domain:
            self._index.setdefault(value, len(self._index))

    @property
    def domain(self) -> List[Hashable]:
        return list(self._index)

    def __call__(self, value: Hashable) -> str:
        if value not in self._index:
            self._index[value] = len(self._index)
        return self.palette[self._index[value] % len(self.palette)]


@dataclass(frozen=True)
class Scales:
    projection: MercatorProjection
    size: SqrtScale
    color: OrdinalColorScale

    @classmethod
    def from_incidents(cls, incidents: pd.DataFrame) -> "Scales":
        if incidents.empty:
            extent = (0.0, 0.0)
        else:
            extent = (float(incidents["nkill"].min()), float(incidents["nkill"].max()))
        return cls(
            projection=MercatorProjection(),
            size=SqrtScale(extent),
            color=OrdinalColorScale(pd.unique(incidents["attacktype"]).tolist()),
        )


@dataclass(frozen=True)
class ViewState:
    year: int = YEAR_MIN


def navigate(state: ViewState, key: str) -> ViewState:
    step = NAVIGATION_STEPS.get(key)
    if step is None:
        return state
    return replace(state, year=min(YEAR_MAX, max(YEAR_MIN, state.year + step)))


CIRCLE_COLUMNS = [
    "x", "y", "radius", "size", "color", "fill_alpha", "line_alpha", "highlighted", "nkill", "attacktype",
]


def draw_circles(incidents: pd.DataFrame, year: int, scales: Scales) -> pd.DataFrame:
    """Rows for the bubbles of one year, largest first so small ones end up on top."""
    subset = incidents[incidents["year"] == year].sort_values("nkill", ascending=False, kind="mergesort")
    if subset.empty:
        return pd.DataFrame({column: [] for column in CIRCLE_COLUMNS})

    x, y = scales.projection(subset["longitude"].to_numpy(), subset["latitude"].to_numpy())
    radius = scales.size(subset["nkill"].to_numpy())
    highlighted = subset["nkill"].to_numpy() > HIGHLIGHT_THRESHOLD
    return pd.DataFrame(
        {
            "x": x,
            "y": y,
            "radius": radius,
            "size": radius * 2,
            "color": [scales.color(code) for code in subset["attacktype"]],
            "fill_alpha": CIRCLE_ALPHA,
            "line_alpha": np.where(highlighted, 1.0, 0.0),
            "highlighted": highlighted,
            "nkill": subset["nkill"].to_numpy(),
            "attacktype": subset["attacktype"].to_numpy(),
        }
    )


@dataclass(frozen=True)
class Scene:
    year: int
    circles: pd.DataFrame

    @property
    def year_label(self) -> str:
        return str(self.year)


def render_scene(incidents: pd.DataFrame, state: ViewState, scales: Scales) -> Scene:
    return Scene(year=state.year, circles=draw_circles(incidents, state.year, scales))


def size_key(size_scale: SqrtScale, values: Sequence[int] = LEGEND_SIZES) -> pd.DataFrame:
    """Reference circles with dashed leaders, all resting on one baseline."""
    radius = np.asarray([size_scale(value) for value in values], dtype=float)
    y = SIZE_KEY_BASELINE - radius
    return pd.DataFrame(
        {
            "value": list(values),
            "label": [str(value) for value in values],
            "x": SIZE_KEY_X,
            "y": y,
            "radius": radius,
            "size": radius * 2,
            "line_x0": SIZE_KEY_X + radius,
            "line_x1": SIZE_KEY_LABEL_X,
        }
    )


def _project_ring(ring, projection: MercatorProjection) -> Tuple[List[float], List[float]]:
    coords = np.asarray(ring, dtype=float)
    xs, ys = projection(coords[:, 0], coords[:, 1])
    return xs.tolist(), ys.tolist()


def project_boundaries(geojson: Dict[str, Any], projection: MercatorProjection) -> Dict[str, list]:
    """Nested xs/ys lists (feature > polygon > ring) for ``multi_polygons``."""
    data: Dict[str, list] = dict(xs=[], ys=[], name=[])
    for feature in geojson.get("features", []):
        geometry = feature.get("geometry") or {}
        kind = geometry.get("type")
        if kind == "Polygon":
            polygons = [geometry["coordinates"]]
        elif kind == "MultiPolygon":
            polygons = geometry["coordinates"]
        else:
            continue

        feature_xs, feature_ys = [], []
        for polygon in polygons:
            rings = [_project_ring(ring, projection) for ring in polygon if len(ring)]
            if not rings:
                continue
            feature_xs.append([xs for xs, _ in rings])
            feature_ys.append([ys for _, ys in rings])
        if not feature_xs:
            continue
        data["xs"].append(feature_xs)
        data["ys"].append(feature_ys)
        data["name"].append((feature.get("properties") or {}).get("name", ""))
    return data


class SwatchState(Enum):
    IDLE = "idle"
    HOVERED = "hovered"


@dataclass
class LegendSwatch:
    code: int
    name: str
    key: str
    y: float
    state: SwatchState = SwatchState.IDLE

    def enter(self) -> None:
        self.state = SwatchState.HOVERED

    def leave(self) -> None:
        self.state = SwatchState.IDLE

    @property
    def hovered(self) -> bool:
        return self.state is SwatchState.HOVERED

    @property
    def fill_alpha(self) -> float:
        return SWATCH_HOVER_ALPHA if self.hovered else SWATCH_IDLE_ALPHA


@dataclass
class ColorKey:
    """Attack-type colour key; each swatch shows its own label while hovered."""

    swatches: List[LegendSwatch] = field(
        default_factory=lambda: [LegendSwatch(code, name, key, y) for code, name, key, y in ATTACK_TYPES]
    )

    def swatch(self, key: str) -> LegendSwatch:
        for swatch in self.swatches:
            if swatch.key == key:
                return swatch
        raise KeyError(key)

    def point_at(self, key: Optional[str]) -> None:
        """Move the pointer onto the swatch ``key``, or off the key with None/""."""
        for swatch in self.swatches:
            if swatch.hovered and swatch.key != key:
                swatch.leave()
        if key:
            self.swatch(key).enter()

    def swatches_frame(self, color_scale: OrdinalColorScale) -> pd.DataFrame:
        return pd.DataFrame(
            {
                "key": [s.key for s in self.swatches],
                "name": [s.name for s in self.swatches],
                "left": SWATCH_X,
                "right": SWATCH_X + SWATCH_WIDTH,
                "top": [s.y for s in self.swatches],
                "bottom": [s.y + SWATCH_HEIGHT for s in self.swatches],
                "color": [color_scale(s.code) for s in self.swatches],
                "fill_alpha": [s.fill_alpha for s in self.swatches],
            }
        )

    def labels_frame(self) -> pd.DataFrame:
        hovered = [s for s in self.swatches if s.hovered]
        return pd.DataFrame(
            {
                "key": [s.key for s in hovered],
                "name": [s.name for s in hovered],
                "x": [SWATCH_LABEL_X] * len(hovered),
                "y": [s.y + SWATCH_HEIGHT / 2 for s in hovered],
            }
        )
