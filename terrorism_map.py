#!/usr/bin/env python3
"""
Global terrorism casualties by year, as a Bokeh bubble map.

Run with:
    bokeh serve --show terrorism_map.py

Left and right arrow keys step through the years 1970-2017. Hovering a
colour swatch in the top-right key names its attack type.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import pandas as pd
from bokeh.document import Document
from bokeh.core.properties import value
from bokeh.events import DocumentReady
from bokeh.io import curdoc
from bokeh.layouts import column
from bokeh.models import (
    ColumnDataSource,
    CustomJS,
    Div,
    HoverTool,
    Label,
    OpenURL,
    Range1d,
    TapTool,
)
from bokeh.plotting import figure

from casualty_data import DataLoadError, Datasets, load_datasets
from casualty_scene import (
    HEIGHT,
    HIGHLIGHT_COLOR,
    WIDTH,
    ColorKey,
    Scales,
    ViewState,
    navigate,
    project_boundaries,
    render_scene,
    size_key,
)

log = logging.getLogger(__name__)

DOCUMENT_TITLE = "Global Terrorism Casualties by Year"
TITLE_TEXT = "GLOBAL TERRORISM CASUALTIES BY YEAR"
INSTRUCTIONS_TEXT = "Use Left and Right Arrows to Navigate"
DOCUMENTATION_TEXT = "Documentation"
DOCUMENTATION_URL = "https://l28-1-n-1-n.github.io/out/index.html"
TEXT_X = WIDTH - 700
FONT = "arial"
LAND_COLOR = "#b8b8b8"

KEYDOWN_JS = """
let seq = 0
window.addEventListener("keydown", (event) => {
    if (event.key === "ArrowLeft" || event.key === "ArrowRight") {
        seq += 1
        relay.tags = [event.key, seq]
    }
})
window.focus()
"""

SWATCH_HOVER_JS = """
const indices = cb_data.index.indices
const key = indices.length > 0 ? swatches.data.key[indices[0]] : ""
if (relay.tags.length === 0 || relay.tags[0] !== key) {
    relay.tags = [key]
}
"""


def _frame_data(frame: pd.DataFrame) -> Dict[str, list]:
    return frame.to_dict(orient="list")


class CasualtyMapView:
    """Owns the view state, the scales and every glyph source of one session."""

    def __init__(self, incidents: pd.DataFrame, boundaries: Dict[str, Any]) -> None:
        self.incidents = incidents
        self.scales = Scales.from_incidents(incidents)
        self.state = ViewState()
        self.color_key = ColorKey()

        self.figure = figure(
            width=WIDTH,
            height=HEIGHT,
            x_range=Range1d(0, WIDTH),
            y_range=Range1d(HEIGHT, 0),
            tools="",
            toolbar_location=None,
            min_border=0,
            outline_line_color=None,
        )
        self.figure.axis.visible = False
        self.figure.grid.visible = False

        self.boundary_source = ColumnDataSource(data=project_boundaries(boundaries, self.scales.projection))
        self.circle_source = ColumnDataSource(data=dict(x=[], y=[], size=[], color=[], line_alpha=[]))
        self.size_key_source = ColumnDataSource(data=_frame_data(size_key(self.scales.size)))
        self.swatch_source = ColumnDataSource(data=_frame_data(self.color_key.swatches_frame(self.scales.color)))
        self.swatch_label_source = ColumnDataSource(data=_frame_data(self.color_key.labels_frame()))

        self.key_relay = Div(text="", visible=False)
        self.hover_relay = Div(text="", visible=False)

        self._draw_base_map()
        self._draw_circle_layer()
        self._draw_text()
        self._draw_legend()
        self.redraw()

        self.key_relay.on_change("tags", self._on_key_relay)
        self.hover_relay.on_change("tags", self._on_hover_relay)

    def _draw_base_map(self) -> None:
        self.figure.multi_polygons(
            xs="xs",
            ys="ys",
            source=self.boundary_source,
            fill_color=LAND_COLOR,
            fill_alpha=0.3,
            line_color=None,
        )

    def _draw_circle_layer(self) -> None:
        self.figure.scatter(
            x="x",
            y="y",
            size="size",
            source=self.circle_source,
            fill_color="color",
            fill_alpha=0.4,
            line_color=HIGHLIGHT_COLOR,
            line_alpha="line_alpha",
            line_width=2,
        )

    def _draw_text(self) -> None:
        for text, y, font_size in [
            (TITLE_TEXT, HEIGHT - 900, "32px"),
            (INSTRUCTIONS_TEXT, HEIGHT - 850, "24px"),
        ]:
            self.figure.add_layout(
                Label(
                    x=TEXT_X,
                    y=y,
                    text=text,
                    text_align="right",
                    text_font=FONT,
                    text_font_size=font_size,
                    text_color="black",
                )
            )

        doc_link = self.figure.text(
            x=[TEXT_X],
            y=[HEIGHT - 800],
            text=[DOCUMENTATION_TEXT],
            text_align="right",
            text_font=value(FONT),
            text_font_size="28px",
            text_color="black",
        )
        self.figure.add_tools(TapTool(renderers=[doc_link], callback=OpenURL(url=DOCUMENTATION_URL)))

        self.year_label = Label(
            x=20,
            y=50,
            text="",
            text_align="left",
            text_font=FONT,
            text_font_size="40px",
            text_color="black",
        )
        self.figure.add_layout(self.year_label)

    def _draw_legend(self) -> None:
        self.figure.scatter(
            x="x",
            y="y",
            size="size",
            source=self.size_key_source,
            fill_color=None,
            line_color="black",
        )
        self.figure.segment(
            x0="line_x0",
            y0="y",
            x1="line_x1",
            y1="y",
            source=self.size_key_source,
            line_color="black",
            line_dash=[2, 2],
        )
        self.figure.text(
            x="line_x1",
            y="y",
            text="label",
            source=self.size_key_source,
            text_font_size="20px",
            text_baseline="middle",
        )

        swatches = self.figure.quad(
            left="left",
            right="right",
            top="top",
            bottom="bottom",
            source=self.swatch_source,
            fill_color="color",
            fill_alpha="fill_alpha",
            line_color=None,
        )
        self.figure.text(
            x="x",
            y="y",
            text="name",
            source=self.swatch_label_source,
            text_align="right",
            text_baseline="middle",
            text_font_size="18px",
            text_color="black",
        )
        self.figure.add_tools(
            HoverTool(
                renderers=[swatches],
                tooltips=None,
                callback=CustomJS(
                    args=dict(swatches=self.swatch_source, relay=self.hover_relay),
                    code=SWATCH_HOVER_JS,
                ),
            )
        )

    def redraw(self) -> None:
        scene = render_scene(self.incidents, self.state, self.scales)
        self.circle_source.data = _frame_data(scene.circles)
        self.year_label.text = scene.year_label

    def handle_key(self, key: str) -> None:
        self.state = navigate(self.state, key)
        log.debug("Key %s -> year %d", key, self.state.year)
        self.redraw()

    def hover(self, key: Optional[str]) -> None:
        self.color_key.point_at(key)
        self.swatch_source.data = _frame_data(self.color_key.swatches_frame(self.scales.color))
        self.swatch_label_source.data = _frame_data(self.color_key.labels_frame())

    def _on_key_relay(self, attr, old, new) -> None:
        if new:
            self.handle_key(new[0])

    def _on_hover_relay(self, attr, old, new) -> None:
        self.hover(new[0] if new else None)

    def layout(self):
        return column(self.figure, self.key_relay, self.hover_relay)


def build_document(doc: Document, datasets: Optional[Datasets] = None) -> CasualtyMapView:
    if datasets is None:
        try:
            datasets = load_datasets()
        except DataLoadError:
            log.exception("Could not load the map datasets")
            raise

    view = CasualtyMapView(datasets.incidents, datasets.boundaries)
    doc.add_root(view.layout())
    doc.js_on_event(DocumentReady, CustomJS(args=dict(relay=view.key_relay), code=KEYDOWN_JS))
    doc.title = DOCUMENT_TITLE
    return view


if __name__.startswith("bokeh_app_"):
    build_document(curdoc())
