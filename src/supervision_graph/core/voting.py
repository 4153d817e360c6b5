"""近邻投票与扩展近邻统计，绕过完整的标签传播。"""

from __future__ import annotations

from typing import Callable, List, Sequence

import numpy as np

from ..models.node import Node
from .cache import NodeCache
from .connector import UNCONNECTED

Sparsifier = Callable[[np.ndarray, int], np.ndarray]


def nearest_neighbor_vote(weights: np.ndarray, labeled: Sequence[Node], cache: NodeCache) -> bool:
    """一个未标注节点的投票。

    weights 是该节点到各带标签节点的边权。每个相连邻居按其缓存次数为所属极性投票，
    票数多的极性胜出；平票时取权重最大的单个邻居的极性；没有邻居时为负。
    """

    neighbors = [j for j in range(len(labeled)) if weights[j] != UNCONNECTED]
    if not neighbors:
        return False
    positive = negative = 0
    for j in neighbors:
        count = cache.count(labeled[j])
        if labeled[j].is_positive:
            positive += count
        else:
            negative += count
    if positive != negative:
        return positive > negative
    strongest = max(neighbors, key=lambda j: weights[j])
    return labeled[strongest].is_positive


def nearest_neighbor_labels(W: np.ndarray, labeled: Sequence[Node], cache: NodeCache) -> List[bool]:
    """W 为 未标注 x 带标签 的矩形权重矩阵。"""

    return [nearest_neighbor_vote(W[i], labeled, cache) for i in range(W.shape[0])]


def _class_statistic(
    W: np.ndarray,
    rows: Sequence[int],
    column: int,
    polarities: Sequence[bool],
    positive: bool,
    class_size: int,
    sparsify: Sparsifier,
) -> float:
    """对 rows 中每个节点，取其到带标签前缀与候选节点的稀疏化边权，
    累加与 positive 同极性的邻居权重，并按 (类大小 x 邻居数) 归一化。"""

    number_of_labeled = len(polarities) - 1
    total = 0.0
    for i in rows:
        row = np.append(W[i, :number_of_labeled], W[i, column])
        nearest = sparsify(row, len(row))
        connected = int(np.count_nonzero(nearest > 0.0))
        if connected == 0 or class_size == 0:
            continue
        mass = sum(w for w, polarity in zip(nearest, polarities) if w > 0.0 and polarity == positive)
        total += mass / (class_size * connected)
    return total


def extended_nearest_neighbor_labels(
    W: np.ndarray, nodes: Sequence[Node], number_of_labeled: int, sparsify: Sparsifier
) -> List[bool]:
    """扩展近邻：分别假设候选为负、为正，比较两类的类条件统计量。

    Tnn + Tpn >= Tnp + Tpp 时为负。
    """

    labeled = list(nodes[:number_of_labeled])
    positives = [i for i, node in enumerate(labeled) if node.is_positive]
    negatives = [i for i, node in enumerate(labeled) if node.is_negative]
    P, N = len(positives), len(negatives)
    polarities = [node.is_positive for node in labeled]

    labels: List[bool] = []
    for j in range(number_of_labeled, len(nodes)):
        as_negative = polarities + [False]
        as_positive = polarities + [True]
        t_nn = _class_statistic(W, negatives + [j], j, as_negative, False, N + 1, sparsify)
        t_pn = _class_statistic(W, positives, j, as_negative, True, P, sparsify)
        t_pp = _class_statistic(W, positives + [j], j, as_positive, True, P + 1, sparsify)
        t_np = _class_statistic(W, negatives, j, as_positive, False, N, sparsify)
        labels.append(not (t_nn + t_pn >= t_np + t_pp))
    return labels
