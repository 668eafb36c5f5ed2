"""
BIOGRAPH VISUALIZATION - Render Frames for the 3D Graph View

- core: node/link styling, render frames, Arrow IPC serialization
"""

from viz.core import (
    NODE_COLORS,
    StyleContext,
    VizNode,
    VizLink,
    RenderFrame,
    build_frame,
    serialize_frame_to_arrow,
)

__all__ = [
    "NODE_COLORS",
    "StyleContext",
    "VizNode",
    "VizLink",
    "RenderFrame",
    "build_frame",
    "serialize_frame_to_arrow",
]
