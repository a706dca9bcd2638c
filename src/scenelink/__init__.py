"""scenelink: Match objects across two visualization boards and time their transition."""

import logging

from scenelink.config import DEFAULT_CONFIG, LinkerConfig
from scenelink.data import DataScope, Dataset, FieldInfo
from scenelink.edges import DecorationEdge, EnterEdge, ExitEdge, IdLink, LinkedEdge, LinkType, ObjectMap
from scenelink.errors import (
    LookupFailure,
    MalformedTemplate,
    SceneLinkError,
    TimingCycleError,
    UnsupportedSequencingField,
)
from scenelink.generator import AnimationGenerator, LayerNode
from scenelink.linker import ObjectLinker
from scenelink.matching import GreedyMatching, OptimalMatching
from scenelink.registry import InMemoryRegistry, Registry
from scenelink.template import DecorationSpec, ObjectClass, Template
from scenelink.timing import DecorationTiming, ObjectTiming, TimingGraph

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "DEFAULT_CONFIG",
    "AnimationGenerator",
    "DataScope",
    "Dataset",
    "DecorationEdge",
    "DecorationSpec",
    "DecorationTiming",
    "EnterEdge",
    "ExitEdge",
    "FieldInfo",
    "GreedyMatching",
    "IdLink",
    "InMemoryRegistry",
    "LayerNode",
    "LinkType",
    "LinkedEdge",
    "LinkerConfig",
    "LookupFailure",
    "MalformedTemplate",
    "ObjectClass",
    "ObjectLinker",
    "ObjectMap",
    "ObjectTiming",
    "OptimalMatching",
    "Registry",
    "SceneLinkError",
    "Template",
    "TimingCycleError",
    "TimingGraph",
    "UnsupportedSequencingField",
]
