"""
Session Configuration

Tunables for one editing session. Defaults match the browser client.
"""

from dataclasses import dataclass


@dataclass
class SessionConfig:
    """Configuration for a ChartSession."""
    # Debounced content/style writes
    save_delay_seconds: float = 1.0

    # New nodes
    default_color: str = "#003057"
    default_text_color: str = "white"
    new_node_prefix: str = "New Node"

    # Collision rectangles for nodes without an explicit size
    node_width: float = 180.0
    node_height: float = 80.0

    # Top-down layout
    layout_node_width: float = 160.0
    layout_node_height: float = 72.0
    horizontal_spacing: float = 40.0
    vertical_spacing: float = 80.0
    root_x: float = 400.0
    root_y: float = 100.0

    # Initial load shows the root and its direct children only
    collapse_on_load: bool = True
