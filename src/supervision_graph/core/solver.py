"""图求解：标签传播、标签扩散与调和场。

所有求解都是输入矩阵的纯函数：W 为对称权重矩阵，D 为度对角矩阵，
y 为带标签前缀的取值（+1 / -1）。返回与节点数等长的向量，符号即标签。
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import numpy as np
from scipy import linalg

from ..logger import get_logger

logger = get_logger(__name__)

# 迭代收敛阈值：相邻两步每个节点的变化都小于该值
CONVERGENCE_TOLERANCE = 1e-12


class SolverKind(str, Enum):
    """求解算法。

    lp: 标签传播（迭代，iterations < 1 时闭式）
    lgc: 标签扩散（对称归一化，alpha 为钳制系数）
    hfc: 调和场闭式解，失败时全部置为 false
    """

    lp = "lp"
    lgc = "lgc"
    hfc = "hfc"


def _inverse_sqrt_degree(D: np.ndarray) -> np.ndarray:
    degrees = np.diag(D).astype(float)
    scaled = np.zeros_like(degrees)
    positive = degrees > 0.0
    scaled[positive] = 1.0 / np.sqrt(degrees[positive])
    return np.diag(scaled)


def _extend(y: np.ndarray, size: int, prior: np.ndarray | None) -> np.ndarray:
    start = np.zeros(size)
    start[: len(y)] = y
    if prior is not None:
        start[len(y):] = prior
    return start


def _iterate(step, start: np.ndarray, iterations: int) -> np.ndarray:
    current = start
    for _ in range(max(iterations, 1)):
        following = step(current)
        if np.all(np.abs(following - current) < CONVERGENCE_TOLERANCE):
            return following
        current = following
    return current


def label_propagation(
    W: np.ndarray, D: np.ndarray, y: np.ndarray, iterations: int = 50, prior: np.ndarray | None = None
) -> np.ndarray:
    """Y <- D^-1 W Y，每一步把带标签前缀钳回真值。"""

    n, labeled = W.shape[0], len(y)
    if labeled == n:
        return y.copy()
    T = linalg.pinv(D) @ W
    if iterations < 1:
        T_ul = T[labeled:, :labeled]
        T_uu = T[labeled:, labeled:]
        solution = linalg.pinv(np.eye(n - labeled) - T_uu) @ T_ul @ y
        return np.concatenate([y, solution])

    def step(current: np.ndarray) -> np.ndarray:
        following = T @ current
        following[:labeled] = y
        return following

    return _iterate(step, _extend(y, n, prior), iterations)


def label_spreading(
    W: np.ndarray,
    D: np.ndarray,
    y: np.ndarray,
    alpha: float = 0.5,
    iterations: int = 50,
    prior: np.ndarray | None = None,
) -> np.ndarray:
    """Y <- alpha S Y + (1 - alpha) Y0，S = D^-1/2 W D^-1/2。"""

    n = W.shape[0]
    scale = _inverse_sqrt_degree(D)
    S = scale @ W @ scale
    anchor = _extend(y, n, None)
    if iterations < 1:
        return (1.0 - alpha) * linalg.pinv(np.eye(n) - alpha * S) @ anchor
    return _iterate(lambda current: alpha * S @ current + (1.0 - alpha) * anchor, _extend(y, n, prior), iterations)


def harmonic_function(W: np.ndarray, D: np.ndarray, y: np.ndarray) -> np.ndarray:
    """f_U = -pinv(L_UU) L_UL y，L = D - W。"""

    n, labeled = W.shape[0], len(y)
    if labeled == n:
        return y.copy()
    L = D - W
    L_ul = L[labeled:, :labeled]
    L_uu = L[labeled:, labeled:]
    try:
        solution = -linalg.pinv(L_uu) @ L_ul @ y
    except (linalg.LinAlgError, ValueError):
        solution = None
    if solution is None or not np.all(np.isfinite(solution)):
        logger.warning("Not converged or matrix is singular. Set everything to FALSE.")
        solution = np.full(n - labeled, -1.0)
    return np.concatenate([y, solution])


@dataclass(frozen=True)
class GraphSolver:
    kind: SolverKind = SolverKind.hfc
    # 最大迭代次数，小于 1 时使用闭式解（hfc 总是闭式）
    iterations: int = 50
    # 标签扩散的钳制系数
    alpha: float = 0.5

    @property
    def is_closed_form(self) -> bool:
        return self.kind == SolverKind.hfc or self.iterations < 1

    def solve(self, W: np.ndarray, D: np.ndarray, y, prior=None) -> np.ndarray:
        W = np.asarray(W, dtype=float)
        D = np.asarray(D, dtype=float)
        y = np.asarray(y, dtype=float)
        prior = None if prior is None else np.asarray(prior, dtype=float)
        if self.kind == SolverKind.lp:
            return label_propagation(W, D, y, self.iterations, prior)
        if self.kind == SolverKind.lgc:
            return label_spreading(W, D, y, self.alpha, self.iterations, prior)
        if self.kind == SolverKind.hfc:
            return harmonic_function(W, D, y)
        raise ValueError(f"unknown solver kind: {self.kind}")
