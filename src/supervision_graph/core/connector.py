"""图连接策略：计算两两边权并按策略稀疏化。

边权为 1 - distance，0 是“未连接”的哨兵值。矩阵构建分两个阶段：
先并行计算全部单元格（互不重叠的写入），全部完成后才逐行稀疏化。
"""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import List, Sequence, Tuple

import numpy as np

from ..logger import get_logger
from ..models.node import Node
from .metric import Metric

logger = get_logger(__name__)

UNCONNECTED = 0.0
# 自适应近邻：保留归一化累计质量达到该值的最短前缀
ADAPTIVE_MASS = 1.0 / 3.0

EncodedGraph = Tuple[np.ndarray, np.ndarray]


class ConnectorKind(str, Enum):
    """连接策略。

    *_labeled: 稀疏化只作用于带标签前缀，未标注邻居保持不变
    *_temporal: 在 *_labeled 基础上，两个未标注节点仅在时序键相差 1 时相连
    """

    full = "full"
    knn = "knn"
    knn_labeled = "knn_labeled"
    knn_temporal = "knn_temporal"
    enn = "enn"
    enn_labeled = "enn_labeled"
    enn_temporal = "enn_temporal"
    ann = "ann"
    ann_labeled = "ann_labeled"
    ann_temporal = "ann_temporal"

    @property
    def is_temporal(self) -> bool:
        return self.value.endswith("_temporal")

    @property
    def restricts_to_labeled(self) -> bool:
        return self.value.endswith("_labeled") or self.is_temporal

    @property
    def family(self) -> str:
        return self.value.split("_")[0]


def _top_k(values: np.ndarray, k: int) -> np.ndarray:
    """保留最大的 k 个互异取值（相同取值的全部位置一起保留）。"""

    distinct = np.unique(values)
    if len(distinct) <= k:
        return values.copy()
    kept = distinct[-k:]
    return np.where(np.isin(values, kept), values, UNCONNECTED)


def _threshold(values: np.ndarray, epsilon: float) -> np.ndarray:
    return np.where(values < epsilon, UNCONNECTED, values)


def _adaptive(values: np.ndarray) -> np.ndarray:
    distinct = np.unique(values)[::-1]
    total = distinct.sum()
    if total <= 0.0:
        return values.copy()
    cumulative = np.cumsum(distinct / total)
    k = 1
    while k < len(distinct) and cumulative[k - 1] < ADAPTIVE_MASS:
        k += 1
    return _top_k(values, k)


@dataclass(frozen=True)
class GraphConnector:
    kind: ConnectorKind = ConnectorKind.full
    # kNN 的 k
    k: int = 2
    # eNN 的阈值
    epsilon: float = 0.75
    # 是否连接两个都带标签的节点（扩展近邻统计需要）
    connect_labeled: bool = False
    # 边权计算的线程数
    workers: int = 1

    @property
    def is_temporal(self) -> bool:
        return self.kind.is_temporal

    # --- 单条边 ---

    def connect(self, x: Node, y: Node, metric: Metric) -> float:
        if x.is_labeled and y.is_labeled and not self.connect_labeled:
            return UNCONNECTED
        if self.is_temporal and x.is_unlabeled and y.is_unlabeled:
            if abs(x.ordering_key - y.ordering_key) != 1:
                return UNCONNECTED
        if metric.uses_evidence:
            return 1.0 - metric.distance(x.evidence, y.evidence)
        return 1.0 - metric.distance(x.atoms, y.atoms)

    # --- 稀疏化 ---

    def make_sparse(self, row: np.ndarray, number_of_labeled: int = 0) -> np.ndarray:
        """对一行边权应用稀疏化策略，返回新数组。"""

        row = np.asarray(row, dtype=float)
        family = self.kind.family
        if family == "full":
            return row.copy()

        if family == "knn":
            rule = lambda values: _top_k(values, self.k)
        elif family == "enn":
            rule = lambda values: _threshold(values, self.epsilon)
        elif family == "ann":
            rule = _adaptive
        else:
            raise ValueError(f"unknown connector kind: {self.kind}")

        if not self.kind.restricts_to_labeled:
            return rule(row)
        sparse = row.copy()
        sparse[:number_of_labeled] = rule(row[:number_of_labeled])
        return sparse

    # --- 构图 ---

    def _weights(self, pairs: List[Tuple[int, int]], rows: Sequence[Node], cols: Sequence[Node], metric: Metric) -> List[float]:
        def task(pair: Tuple[int, int]) -> float:
            i, j = pair
            return self.connect(rows[i], cols[j], metric)

        if self.workers > 1 and len(pairs) > 1:
            with ThreadPoolExecutor(max_workers=self.workers) as pool:
                # list() 即等待全部任务结束
                return list(pool.map(task, pairs))
        return [task(pair) for pair in pairs]

    def _encode(self, W: np.ndarray, number_of_labeled: int) -> EncodedGraph:
        sparse = np.vstack([self.make_sparse(W[i], number_of_labeled) for i in range(W.shape[0])]) if len(W) else W
        # 逐行稀疏化后按并集对称化
        W = np.maximum(sparse, sparse.T)
        np.fill_diagonal(W, UNCONNECTED)
        D = np.diag(W.sum(axis=1))
        return W, D

    def fully_connect(self, nodes: Sequence[Node], metric: Metric) -> EncodedGraph:
        """计算完整上三角（镜像到下三角）后逐行稀疏化。"""

        start = time.perf_counter()
        n = len(nodes)
        number_of_labeled = sum(1 for node in nodes if node.is_labeled)
        W = np.full((n, n), UNCONNECTED)
        pairs = [(i, j) for i in range(n) for j in range(i + 1, n)]
        for (i, j), weight in zip(pairs, self._weights(pairs, nodes, nodes, metric)):
            W[i, j] = weight
            W[j, i] = weight
        encoded = self._encode(W, number_of_labeled)
        logger.debug("Fully connected %d nodes in %.3fs", n, time.perf_counter() - start)
        return encoded

    def smart_connect(self, nodes: Sequence[Node], unlabeled: Sequence[Node], metric: Metric) -> EncodedGraph:
        """只计算涉及未标注节点的单元格；带标签节点之间保持未连接。

        nodes 须是带标签在前、unlabeled 在后的序列。
        """

        start = time.perf_counter()
        n = len(nodes)
        number_of_labeled = n - len(unlabeled)
        W = np.full((n, n), UNCONNECTED)
        pairs = [(i, j) for i in range(number_of_labeled, n) for j in range(i)]
        for (i, j), weight in zip(pairs, self._weights(pairs, nodes, nodes, metric)):
            W[i, j] = weight
            W[j, i] = weight
        encoded = self._encode(W, number_of_labeled)
        logger.debug("Smart connected %d unlabeled rows in %.3fs", len(unlabeled), time.perf_counter() - start)
        return encoded

    def bi_connect(self, left: Sequence[Node], right: Sequence[Node], metric: Metric) -> np.ndarray:
        """两个不相交节点集之间的矩形权重矩阵，行内稀疏化。"""

        W = np.full((len(left), len(right)), UNCONNECTED)
        pairs = [(i, j) for i in range(len(left)) for j in range(len(right))]
        for (i, j), weight in zip(pairs, self._weights(pairs, left, right, metric)):
            W[i, j] = weight
        for i in range(len(left)):
            W[i] = self.make_sparse(W[i], len(right))
        return W

    @staticmethod
    def synopsis_of(W: np.ndarray, start: int, end: int) -> np.ndarray:
        """反复消去 start 处的节点，直到只剩 start + end 个节点。

        消去时把该节点的连通性按度归一化转移给其邻居：
        W[i, j] += W[i, start] * W[start, j] / degree(start)，i != j。
        """

        W = np.array(W, dtype=float)
        while W.shape[0] > start + end:
            degree = W[start].sum()
            if degree > 0.0:
                transfer = np.outer(W[:, start], W[start, :]) / degree
                np.fill_diagonal(transfer, 0.0)
                W = W + transfer
            W = np.delete(np.delete(W, start, axis=0), start, axis=1)
        return W
