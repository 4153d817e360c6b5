"""节点簇：同极性节点集合及其原型特征。"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, FrozenSet, Iterable

from .logic import Feature
from .node import Node

if TYPE_CHECKING:
    from ..core.cache import NodeCache


def _weight(node: Node, cache: "NodeCache | None") -> int:
    return cache.get_or_else(node, 1) if cache is not None else 1


@dataclass(frozen=True)
class NodeCluster:
    """密度为簇内节点在缓存中的出现次数之和（不在缓存中的按 1 计）。"""

    prototype: FrozenSet[Feature]
    nodes: FrozenSet[Node]
    density: int = 0

    @classmethod
    def empty(cls) -> "NodeCluster":
        return cls(frozenset(), frozenset(), 0)

    @classmethod
    def from_nodes(cls, nodes: Iterable[Node], cache: "NodeCache | None" = None) -> "NodeCluster":
        nodes = frozenset(nodes)
        return cls(
            frozenset(f for node in nodes for f in node.features),
            nodes,
            sum(_weight(node, cache) for node in nodes),
        )

    @property
    def is_positive(self) -> bool:
        return all(node.is_positive for node in self.nodes)

    @property
    def is_negative(self) -> bool:
        return all(node.is_negative for node in self.nodes)

    @property
    def has_positive(self) -> bool:
        return any(node.is_positive for node in self.nodes)

    @property
    def has_negative(self) -> bool:
        return any(node.is_negative for node in self.nodes)

    @property
    def is_empty(self) -> bool:
        return not self.nodes

    def __contains__(self, node: Node) -> bool:
        return node in self.nodes

    def __len__(self) -> int:
        return len(self.nodes)

    def add(self, node: Node, cache: "NodeCache | None" = None) -> "NodeCluster":
        return NodeCluster(
            self.prototype | node.features,
            self.nodes | {node},
            self.density + _weight(node, cache),
        )

    def majority_prototype(self, cache: "NodeCache") -> "NodeCluster":
        """只保留被多数（按缓存频次加权）成员拥有的原型特征。"""

        kept = set()
        for feature in self.prototype:
            having = sum(_weight(n, cache) for n in self.nodes if feature in n.features)
            lacking = sum(_weight(n, cache) for n in self.nodes if feature not in n.features)
            if having > lacking:
                kept.add(feature)
        return NodeCluster(frozenset(kept), self.nodes, self.density)

    def to_text(self, cache: "NodeCache | None" = None, total_mass: float = 0.0) -> str:
        share = f" ({self.density / total_mass:.4f})" if total_mass else ""
        lines = [
            f"Prototype: {', '.join(sorted(str(f) for f in self.prototype))}",
            f"Density: {self.density}{share}",
            "Nodes:",
        ]
        lines.extend(
            f"* {node.to_text()} : {_weight(node, cache)}" for node in sorted(self.nodes, key=Node.to_text)
        )
        return "\n".join(lines)
