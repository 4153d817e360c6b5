"""特征选择协作方的接口与按包含关系聚簇。"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Mapping, Protocol, Sequence, Tuple

from ..logger import get_logger
from ..models.cluster import NodeCluster
from ..models.logic import Feature
from ..models.node import Node
from .cache import NodeCache

logger = get_logger(__name__)


class FeatureSelector(Protocol):
    """外部的间隔最大化优化器（由线性/整数规划实现）。

    返回特征权重与筛选或扩充后的带标签节点。
    """

    def optimize(
        self, labeled: Sequence[Node], cache: NodeCache
    ) -> Tuple[Mapping[Feature, float], Sequence[Node]]: ...


def _grow(nodes: Sequence[Node], cache: NodeCache) -> List[NodeCluster]:
    # 以最大的节点为种子；新节点并入包含它的最密簇，否则自成一簇
    clusters = [NodeCluster.from_nodes([nodes[0]], cache)]
    for node in nodes[1:]:
        hosts = [i for i, cluster in enumerate(clusters) if any(node.subsumes(member) for member in cluster.nodes)]
        if not hosts:
            clusters.append(NodeCluster.from_nodes([node], cache))
            continue
        densest = max(hosts, key=lambda i: clusters[i].density)
        clusters[densest] = clusters[densest].add(node, cache)
    return clusters


@dataclass(frozen=True)
class Clustering:
    """把带标签节点按极性分别聚簇。"""

    # 保留的簇累计密度占总质量的比例，1.0 表示保留全部
    max_density: float = 1.0

    def cluster(self, nodes: Sequence[Node], cache: NodeCache) -> List[NodeCluster]:
        ordered = sorted(nodes, key=lambda n: n.size, reverse=True)
        positives = [n for n in ordered if n.is_positive]
        negatives = [n for n in ordered if n.is_negative]
        if not positives or not negatives:
            return [NodeCluster.from_nodes(positives, cache), NodeCluster.from_nodes(negatives, cache)]

        total = sum(cache.get_or_else(n, 1) for n in nodes)
        clusters = self._densest(_grow(positives, cache)) + self._densest(_grow(negatives, cache))
        logger.debug(
            "Clusters:\n%s", "\n".join(c.majority_prototype(cache).to_text(cache, total) for c in clusters)
        )
        return clusters

    def _densest(self, clusters: List[NodeCluster]) -> List[NodeCluster]:
        """按密度降序保留簇，直到累计密度达到 max_density * 该极性质量；至少保留一个。"""

        ordered = sorted(clusters, key=lambda c: c.density, reverse=True)
        mass = sum(c.density for c in ordered)
        kept: List[NodeCluster] = []
        accumulated = 0
        for cluster in ordered:
            if kept and accumulated >= self.max_density * mass:
                break
            kept.append(cluster)
            accumulated += cluster.density
        return kept
