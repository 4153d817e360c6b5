"""数据模型。"""

from .annotation import Annotation
from .cluster import NodeCluster
from .logic import Atom, AtomSignature, Clause, Constant, EvidenceAtom, Feature, Literal, TriState, Variable
from .modes import KnowledgeBase, ModeDeclaration, PlaceMarker
from .node import Node

__all__ = [
    "Annotation",
    "Atom",
    "AtomSignature",
    "Clause",
    "Constant",
    "EvidenceAtom",
    "Feature",
    "KnowledgeBase",
    "Literal",
    "ModeDeclaration",
    "Node",
    "NodeCluster",
    "PlaceMarker",
    "TriState",
    "Variable",
]
