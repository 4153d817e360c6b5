"""流式监督图：跨批次保留邻接矩阵，用概要化约束内存。

历史带标签节点被压缩为两个极性汇点（0 为负，1 为正）；其后是保留的未标注窗口，
再之后是本批次的未标注节点。
"""

from __future__ import annotations

import time
from functools import cached_property
from typing import List, Sequence, Tuple

import numpy as np

from ..errors import ConfigurationError
from ..logger import get_logger
from ..models.logic import EvidenceAtom, TriState
from ..models.node import Node
from .cache import NodeCache
from .metric import Metric
from .solver import GraphSolver, SolverKind
from .supervision_graph import Potentials, SupervisionGraph

logger = get_logger(__name__)

# 极性汇点个数，负汇点在前
SINKS = 2
SINK_VALUES = np.array([-1.0, 1.0])


class StreamingGraphManager(SupervisionGraph):
    def __init__(
        self,
        *args,
        stored_unlabeled: Sequence[Node] = (),
        retained: np.ndarray | None = None,
        **kwargs,
    ) -> None:
        super().__init__(*args, **kwargs)
        if not self.connector.is_temporal:
            raise ConfigurationError("Streaming supervision requires a temporal connector.")
        self.solver = GraphSolver(SolverKind(self.config.solver_kind), self.config.iterations, self.config.alpha)
        self.memory = self.config.memory
        self.stored_unlabeled: Tuple[Node, ...] = tuple(stored_unlabeled)
        if retained is None:
            retained = np.zeros((SINKS + len(self.stored_unlabeled),) * 2)
        if retained.shape != (SINKS + len(self.stored_unlabeled),) * 2:
            raise ValueError("retained matrix does not match the stored unlabeled window")
        self.retained = np.array(retained, dtype=float)

    def _has_supervision(self) -> bool:
        # 汇点上已有历史质量时也可以求解
        return self.number_of_labeled > 0 or bool(self.retained[:SINKS].sum() > 0.0)

    @cached_property
    def _expanded(self) -> Tuple[np.ndarray, np.ndarray]:
        """接入本批次未标注节点后的 (W, D)。"""

        labeled, unlabeled = self.labeled_nodes, self.unlabeled_nodes
        L, S, U = len(labeled), len(self.stored_unlabeled), len(unlabeled)

        if self.solver.kind == SolverKind.hfc:
            WW, _ = self.connector.smart_connect(self.nodes, unlabeled, self.metric)
        else:
            WW, _ = self.connector.fully_connect(self.nodes, self.metric)

        size = SINKS + S + U
        W = np.zeros((size, size))
        W[: SINKS + S, : SINKS + S] = self.retained

        for i in range(U):
            row, wi = L + i, SINKS + S + i
            for j in range(len(self.nodes)):
                if j < L:
                    sink = 1 if labeled[j].is_positive else 0
                    W[wi, sink] += WW[row, j]
                    W[sink, wi] += WW[j, row]
                else:
                    wj = SINKS + S + (j - L)
                    W[wi, wj] = WW[row, j]
                    W[wj, wi] = WW[j, row]
            for j, stored in enumerate(self.stored_unlabeled):
                weight = self.connector.connect(unlabeled[i], stored, self.metric)
                W[wi, SINKS + j] = weight
                W[SINKS + j, wi] = weight

        D = np.diag(W.sum(axis=1))
        return W, D

    @cached_property
    def _synopsis(self) -> np.ndarray:
        W, _ = self._expanded
        return self.connector.synopsis_of(W, SINKS, self.memory)

    @property
    def next_window(self) -> Tuple[Node, ...]:
        window = self.stored_unlabeled + self.unlabeled_nodes
        return window[-self.memory:]

    def _optimize(self, potentials: Potentials) -> List[EvidenceAtom]:
        self._log_summary()
        start = time.perf_counter()
        W, D = self._expanded
        logger.info("Graph connected in %.3fs", time.perf_counter() - start)

        start = time.perf_counter()
        solution = self.solver.solve(W, D, SINK_VALUES)[SINKS + len(self.stored_unlabeled):]
        states = [TriState.from_value(value) for value in solution]
        logger.info("Labeling solution found in %.3fs", time.perf_counter() - start)
        logger.debug("\n".join(f"{n.query.to_text()} = {v}" for n, v in zip(self.unlabeled_nodes, solution)))
        return self._labels_to_atoms(self.unlabeled_nodes, states)

    def _successor(self, nodes, metric: Metric, annotation, cache: NodeCache) -> "StreamingGraphManager":
        if self.unlabeled_nodes:
            window, retained = self.next_window, self._synopsis
        else:
            window, retained = self.stored_unlabeled, self.retained
        return StreamingGraphManager(
            nodes,
            self.signature,
            self.connector,
            metric,
            annotation,
            cache,
            self.config,
            grounder=self.grounder,
            selector=self.selector,
            background=self.background,
            stored_unlabeled=window,
            retained=retained,
        )
