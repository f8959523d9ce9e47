"""FloatChat: query-context extraction and visualization mapping for ARGO ocean data."""

from .context import extract_context
from .schemas import ConversationTurn, MeasurementRow, QueryContext, VisualizationOptions
from .statistics import (
    EmptyInputError,
    build_grid,
    pearson_correlation,
    quantize_to_color_scale,
    value_range,
)
from .store import SessionContextStore
from .visualization import map_visualization

__version__ = "1.0.0"

__all__ = [
    "ConversationTurn",
    "EmptyInputError",
    "MeasurementRow",
    "QueryContext",
    "SessionContextStore",
    "VisualizationOptions",
    "build_grid",
    "extract_context",
    "map_visualization",
    "pearson_correlation",
    "quantize_to_color_scale",
    "value_range",
]
