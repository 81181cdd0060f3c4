"""VectorFlow graph state engine."""

from .editor import ActionResult, FlowEditor
from .history import HistoryManager
from .layout import LayoutResult, layout_nodes
from .containment import resize_groups
from .models import (
    Deliverable,
    FieldDefinition,
    FieldSchema,
    Flow,
    GraphEdge,
    GraphNode,
    GraphSnapshot,
    NodeData,
    Position,
    Project,
    Size,
)
from .parser import parse_file, parse_yaml, project_to_yaml
from .remap import remap_nodes
from .workspace import FlowWorkspace

__version__ = "0.1.0"
