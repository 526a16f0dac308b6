"""Plotly-based interactive visualization of a map state snapshot."""

from typing import TYPE_CHECKING

import plotly.graph_objects as go

from src.map_viewer.transformer import (
    compute_view,
    coordinates_to_arrays,
    group_pois_by_category,
    route_length_m,
)
from src.navigation.geo import Coordinate
from src.navigation.poi import PoiCategory, PointOfInterest

if TYPE_CHECKING:
    from src.navigation.controller import MapSnapshot

MAP_STYLE = "carto-positron-nolabels"

ROUTE_COLOR = "#5b1a0a"  # dried-blood red
TRAIL_COLOR = "rgba(120, 90, 60, 0.45)"

# Marker traces that stay visible in every layer preset
ANCHOR_TRACES = ("Waypoint", "Player")

CATEGORY_COLORS = {
    PoiCategory.HOSPITAL: "rgb(200, 30, 30)",
    PoiCategory.GAS_STATION: "rgb(230, 140, 20)",
    PoiCategory.SHERIFF: "rgb(40, 60, 140)",
    PoiCategory.BANK: "rgb(20, 120, 60)",
    PoiCategory.RESTAURANT: "rgb(170, 90, 40)",
    PoiCategory.SHOP: "rgb(110, 110, 110)",
    PoiCategory.CAMP: "rgb(90, 130, 50)",
    PoiCategory.HOTEL: "rgb(120, 60, 140)",
    PoiCategory.SALOON: "rgb(140, 70, 20)",
}


def category_label(category: PoiCategory) -> str:
    """Legend name for a category, e.g. "Gas Station"."""
    return category.value.replace("-", " ").title()


def format_distance(distance_m: float | None) -> str:
    if distance_m is None:
        return "-"
    if distance_m >= 1000:
        return f"{distance_m / 1000:.1f} km"
    return f"{distance_m:.0f} m"


def format_duration(duration_s: float | None) -> str:
    if duration_s is None:
        return "-"
    minutes = int(round(duration_s / 60))
    if minutes >= 60:
        return f"{minutes // 60} h {minutes % 60:02d} min"
    return f"{minutes} min"


def create_figure(
    snapshot: "MapSnapshot",
    title: str = "Frontier Map",
    default_center: Coordinate = (23.458, 75.417),
    show_pois: bool = True,
    show_trail: bool = True,
) -> go.Figure:
    """
    Create an interactive Plotly map figure for a controller snapshot.

    Args:
        snapshot: State to draw (POIs are expected to be filtered already)
        title: Figure title; distance and duration are appended when known
        default_center: Camera center when nothing is placed yet
        show_pois: Whether to draw POI markers
        show_trail: Whether to draw the exploration trail

    Returns:
        Plotly Figure object ready for display
    """
    fig = go.Figure()

    # Trail first so it stays behind everything else
    if show_trail and len(snapshot.exploration_trail) > 1:
        _add_line_to_figure(fig, snapshot.exploration_trail, TRAIL_COLOR, "Explored", width=8)

    if len(snapshot.animated_route) > 1:
        _add_line_to_figure(fig, snapshot.animated_route, ROUTE_COLOR, "Route", width=4)

    if show_pois:
        for category, pois in group_pois_by_category(snapshot.pois).items():
            _add_pois_to_figure(fig, category, pois)

    if snapshot.waypoint is not None:
        _add_marker_to_figure(fig, snapshot.waypoint, "Waypoint", "rgb(180, 20, 20)", size=14)

    if snapshot.player_position is not None:
        _add_marker_to_figure(fig, snapshot.player_position, "Player", "rgb(20, 20, 20)", size=16)

    center, zoom = compute_view(snapshot, default_center)

    full_title = title
    if snapshot.waypoint is not None:
        full_title += (
            f"<br><sub>Distance: {format_distance(route_length_m(snapshot))}"
            f" | Duration: {format_duration(snapshot.duration_s)}</sub>"
        )
    if snapshot.permission_blocked:
        full_title += "<br><sub>Location permission blocked</sub>"

    fig.update_layout(
        title=full_title,
        map=dict(
            style=MAP_STYLE,
            center=dict(lat=center[0], lon=center[1]),
            zoom=zoom,
        ),
        showlegend=True,
        legend=dict(
            yanchor="top",
            y=0.99,
            xanchor="left",
            x=0.01,
            itemclick="toggle",
            itemdoubleclick="toggleothers",
        ),
        margin=dict(l=0, r=0, t=80, b=0),
        updatemenus=_create_layer_menu(fig),
    )

    return fig


def _create_layer_menu(fig: go.Figure) -> list[dict]:
    """
    Dropdown with map layer presets (route, POIs, trail).

    Plotly has no per-group toggle, so each preset carries a full
    visibility array; hidden traces stay in the legend.
    """
    names = [trace.name for trace in fig.data]
    poi_names = {category_label(category) for category in PoiCategory}

    def preset(label: str, keep) -> dict:
        visible = [True if keep(name) else "legendonly" for name in names]
        return dict(label=label, method="restyle", args=[{"visible": visible}])

    buttons = [
        preset("All Layers", lambda name: True),
        preset("Route Only", lambda name: name == "Route" or name in ANCHOR_TRACES),
        preset("Places Only", lambda name: name in poi_names or name in ANCHOR_TRACES),
        preset("Hide Trail", lambda name: name != "Explored"),
    ]

    return [
        dict(
            type="dropdown",
            direction="down",
            buttons=buttons,
            pad={"r": 10, "t": 10},
            showactive=True,
            x=0.0,
            xanchor="left",
            y=1.15,
            yanchor="top",
        )
    ]


def _add_line_to_figure(
    fig: go.Figure,
    points: tuple[Coordinate, ...],
    color: str,
    name: str,
    width: int = 4,
) -> None:
    lats, lons = coordinates_to_arrays(points)
    fig.add_trace(
        go.Scattermap(
            lat=lats,
            lon=lons,
            mode="lines",
            line=dict(color=color, width=width),
            hoverinfo="skip",
            name=name,
        )
    )


def _add_pois_to_figure(
    fig: go.Figure,
    category: PoiCategory,
    pois: list[PointOfInterest],
) -> None:
    """Add one marker trace per category, with names in the hover text."""
    lats, lons = coordinates_to_arrays(poi.position for poi in pois)

    hover_texts = []
    for poi in pois:
        text = f"<b>{poi.name or category.value.title()}</b><br>"
        text += f"Category: {category.value}<br>"
        text += f"OSM id: {poi.id}<br>"
        text += f"Position: ({poi.position[0]:.5f}, {poi.position[1]:.5f})"
        hover_texts.append(text)

    fig.add_trace(
        go.Scattermap(
            lat=lats,
            lon=lons,
            mode="markers",
            marker=dict(size=9, color=CATEGORY_COLORS[category], opacity=0.9),
            hovertext=hover_texts,
            hoverinfo="text",
            name=category_label(category),
        )
    )


def _add_marker_to_figure(
    fig: go.Figure,
    position: Coordinate,
    name: str,
    color: str,
    size: int = 12,
) -> None:
    fig.add_trace(
        go.Scattermap(
            lat=[position[0]],
            lon=[position[1]],
            mode="markers+text",
            marker=dict(size=size, color=color),
            text=[name],
            textposition="top center",
            hovertext=[f"<b>{name}</b><br>({position[0]:.5f}, {position[1]:.5f})"],
            hoverinfo="text",
            name=name,
        )
    )


def show_figure(fig: go.Figure) -> None:
    """Display figure in browser."""
    fig.show()


def export_html(fig: go.Figure, output_path: str) -> None:
    """Export figure as standalone HTML file."""
    fig.write_html(output_path, include_plotlyjs=True, full_html=True)
