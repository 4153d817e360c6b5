"""节点证据之间的距离度量。"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Mapping, Protocol, Sequence

import numpy as np
from scipy.optimize import linear_sum_assignment

from ..models.logic import Atom, Feature

Matcher = Callable[[np.ndarray], float]


class Metric(Protocol):
    """距离协议：返回 [0, 1] 内的值。

    uses_evidence 为 True 时比较节点的地证据，否则比较提升后的体原子。
    """

    uses_evidence: bool

    def distance(self, xs: Sequence, ys: Sequence) -> float: ...

    def having_weights(self, weights: Mapping[Feature, float]) -> "Metric": ...


def hungarian_matcher(costs: np.ndarray) -> float:
    """最优一对一匹配的平均代价，未匹配的元素各计 1。"""

    rows, cols = linear_sum_assignment(costs)
    unmatched = abs(costs.shape[0] - costs.shape[1])
    return float((costs[rows, cols].sum() + unmatched) / max(costs.shape))


def hausdorff_matcher(costs: np.ndarray) -> float:
    return float(max(costs.min(axis=1).max(), costs.min(axis=0).max()))


MATCHERS = {"hungarian": hungarian_matcher, "hausdorff": hausdorff_matcher}


@dataclass(frozen=True)
class BinaryMetric:
    """原子距离为 0/1：签名与常量参数都相同时为 0。

    集合距离由匹配器在代价矩阵上给出；feature_weights 存在时按特征缩放代价。
    """

    matcher: Matcher = hungarian_matcher
    feature_weights: Mapping[Feature, float] | None = field(default=None, hash=False)
    uses_evidence: bool = False

    def having_weights(self, weights: Mapping[Feature, float]) -> "BinaryMetric":
        return BinaryMetric(self.matcher, dict(weights), self.uses_evidence)

    def atom_distance(self, x: Atom, y: Atom) -> float:
        if x.signature != y.signature or x.constants != y.constants:
            return 1.0
        return 0.0

    def _weight(self, x: Atom, y: Atom) -> float:
        if self.feature_weights is None:
            return 1.0
        return max(self.feature_weights.get(Feature.of(x), 1.0), self.feature_weights.get(Feature.of(y), 1.0))

    def distance(self, xs: Sequence, ys: Sequence) -> float:
        if not xs and not ys:
            return 0.0
        if not xs or not ys:
            return 1.0
        costs = np.array(
            [[min(1.0, self.atom_distance(x, y) * self._weight(x, y)) for y in ys] for x in xs],
            dtype=float,
        )
        return self.matcher(costs)
