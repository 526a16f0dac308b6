"""Frontier Map Viewer - Interactive visualization of map controller snapshots."""

from src.map_viewer.loader import TrackData, load_track
from src.map_viewer.transformer import compute_bounds, compute_view
from src.map_viewer.viewer import create_figure, export_html

__all__ = [
    "TrackData",
    "load_track",
    "compute_bounds",
    "compute_view",
    "create_figure",
    "export_html",
]
