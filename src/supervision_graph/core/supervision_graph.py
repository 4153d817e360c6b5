"""监督图：持有节点划分，驱动连接与求解来补全标注，并支持按批次扩展。

扩展是纯的状态转移：旧图不被修改，返回一个新图。
"""

from __future__ import annotations

import time
from typing import Callable, FrozenSet, List, Mapping, Sequence, Tuple

import numpy as np

from ..config import SupervisionConfig
from ..errors import ConfigurationError, SupervisionError
from ..logger import get_logger
from ..models.annotation import Annotation
from ..models.logic import AtomSignature, Clause, EvidenceAtom, TriState
from ..models.modes import KnowledgeBase, ModeDeclarations
from ..models.node import Node
from .cache import NodeCache
from .connector import ConnectorKind, GraphConnector
from .grounding import NodeSource, SimpleGrounder
from .metric import Metric
from .selection import Clustering, FeatureSelector
from .solver import GraphSolver, SolverKind
from .voting import extended_nearest_neighbor_labels, nearest_neighbor_labels

logger = get_logger(__name__)

BackgroundCheck = Callable[[Clause, Sequence[Clause]], bool]
Potentials = Mapping[EvidenceAtom, float]


def is_subsumed(clause: Clause, background: Sequence[Clause]) -> bool:
    """候选子句是否已被某条背景知识子句包含。"""

    return any(known.subsumes(clause) for known in background)


def _check_labeled_prefix(nodes: Sequence[Node]) -> None:
    seen_unlabeled = False
    for node in nodes:
        if node.is_unlabeled:
            seen_unlabeled = True
        elif seen_unlabeled:
            raise SupervisionError("labeled nodes must precede unlabeled nodes")


class SupervisionGraph:
    """监督图基类。子类实现 _optimize 给出未标注节点的标注。"""

    def __init__(
        self,
        nodes: Sequence[Node],
        signature: AtomSignature,
        connector: GraphConnector,
        metric: Metric,
        annotation: Annotation,
        cache: NodeCache,
        config: SupervisionConfig,
        *,
        grounder: NodeSource | None = None,
        selector: FeatureSelector | None = None,
        background: BackgroundCheck = is_subsumed,
    ) -> None:
        _check_labeled_prefix(nodes)
        if connector.is_temporal and any(node.order_index < 0 for node in nodes):
            raise ConfigurationError("Temporal connectors require an ordering index in the query mode declaration.")
        self.nodes: Tuple[Node, ...] = tuple(nodes)
        self.signature = signature
        self.connector = connector
        self.metric = metric
        self.annotation = annotation
        self.cache = cache
        self.config = config
        self.grounder = grounder or SimpleGrounder(cluster_unlabeled=config.enable_clusters)
        self.selector = selector
        self.background = background

    # --- 节点划分 ---

    @property
    def labeled_nodes(self) -> Tuple[Node, ...]:
        return tuple(node for node in self.nodes if node.is_labeled)

    @property
    def unlabeled_nodes(self) -> Tuple[Node, ...]:
        return tuple(node for node in self.nodes if node.is_unlabeled)

    @property
    def number_of_nodes(self) -> int:
        return len(self.nodes)

    @property
    def number_of_labeled(self) -> int:
        return len(self.labeled_nodes)

    @property
    def number_of_unlabeled(self) -> int:
        return len(self.unlabeled_nodes)

    def _log_summary(self) -> None:
        logger.info(
            "Supervision graph has %d nodes: %d labeled, %d unlabeled, query signature %s",
            self.number_of_nodes,
            self.number_of_labeled,
            self.number_of_unlabeled,
            self.signature,
        )

    def _has_supervision(self) -> bool:
        return self.number_of_labeled > 0

    # --- 补全 ---

    def complete_supervision(
        self, potentials: Potentials | None = None
    ) -> Tuple[FrozenSet[EvidenceAtom], Annotation]:
        """返回 (新标注的目标原子, 补全后的完整标注)。"""

        if not self.unlabeled_nodes:
            logger.warning("Supervision graph has no unlabeled nodes, nothing to complete.")
            return frozenset(), self.annotation

        if not self._has_supervision():
            logger.warning(
                "Supervision graph has no labeled nodes. Labeling all %d unlabeled nodes as FALSE.",
                self.number_of_unlabeled,
            )
            atoms = [atom for node in self.unlabeled_nodes for atom in node.label_using_value(TriState.false)]
        else:
            atoms = self._optimize(potentials or {})

        return frozenset(atoms), self.annotation.with_atoms(atoms)

    def _optimize(self, potentials: Potentials) -> List[EvidenceAtom]:
        raise NotImplementedError

    @staticmethod
    def _labels_to_atoms(nodes: Sequence[Node], states: Sequence[TriState | bool]) -> List[EvidenceAtom]:
        return [atom for node, state in zip(nodes, states) for atom in node.label_using_value(state)]

    # --- 扩展 ---

    def extend(self, kb: KnowledgeBase, annotation: Annotation, modes: ModeDeclarations) -> "SupervisionGraph":
        """用新批次扩展，返回新图；带标签节点总在未标注节点之前。"""

        config = self.config
        current = self.grounder.partition(kb, annotation, modes, self.signature)

        labeled = [node for node in current if node.is_labeled]
        unlabeled = [node for node in current if node.is_unlabeled]
        non_empty = [node for node in unlabeled if node.size >= config.min_node_size]
        empty = [node for node in unlabeled if node.size < config.min_node_size]

        pure = [node for node in labeled if not node.is_empty and not self.background(node.clause, kb.clauses)]
        if config.augment_labeled:
            pure = [derived for node in pure for derived in node.augment()]

        entries = [atom for node in labeled for atom in (node.query,) + node.similar_atoms]
        entries += [atom for node in empty for atom in node.label_using_value(TriState.false)]
        if empty:
            logger.warning("Found %d empty unlabeled nodes. Set them to FALSE.", len(empty))
        logger.info("Found %d pure labeled and %d unlabeled nodes.", len(pure), len(non_empty))
        next_annotation = Annotation.of(self.signature, entries)

        cache = self.cache
        if not pure:
            selected = list(self.labeled_nodes)
        else:
            start = time.perf_counter()
            cache = cache.merge(pure)
            selected = [
                node
                for node in cache.collect_nodes()
                if node.size >= config.min_node_size and cache.count(node) >= config.min_node_occurrence
            ]
            logger.info("Cache updated in %.3fs", time.perf_counter() - start)
            logger.info("%d/%d unique labeled nodes kept.", len(selected), self.number_of_labeled + len(labeled))
            logger.debug("Cache:\n%s", cache.to_text())

        metric = self.metric
        mixed = any(n.is_positive for n in selected) and any(n.is_negative for n in selected)
        if mixed and cache.has_changed and non_empty and config.enable_selection and self.selector is not None:
            logger.info("Performing feature selection.")
            clusters = Clustering(config.max_density).cluster(selected, cache)
            weights, selected = self.selector.optimize([n for c in clusters for n in c.nodes], cache)
            selected = list(selected)
            metric = metric.having_weights(weights)
            cache = cache.mark_clean()

        nodes = [node for node in selected if node.is_labeled] + non_empty
        return self._successor(nodes, metric, next_annotation, cache)

    def _successor(
        self, nodes: Sequence[Node], metric: Metric, annotation: Annotation, cache: NodeCache
    ) -> "SupervisionGraph":
        return type(self)(
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
        )


class SpliceGraph(SupervisionGraph):
    """连接整张图后用标签传播类算法求解。"""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.solver = GraphSolver(SolverKind(self.config.solver_kind), self.config.iterations, self.config.alpha)

    def _connect(self, nodes: Sequence[Node], unlabeled: Sequence[Node]) -> Tuple[np.ndarray, np.ndarray]:
        start = time.perf_counter()
        if self.solver.kind == SolverKind.hfc:
            encoded = self.connector.smart_connect(nodes, unlabeled, self.metric)
        else:
            encoded = self.connector.fully_connect(nodes, self.metric)
        logger.info("Graph connected in %.3fs", time.perf_counter() - start)
        return encoded

    def _prior(self, potentials: Potentials, unlabeled: Sequence[Node]) -> np.ndarray | None:
        # 闭式解与势无关，只为迭代求解设定初值
        if not potentials or self.solver.is_closed_form:
            return None
        values = {atom.key: value for atom, value in potentials.items()}
        return np.array([values.get(node.query.key, 0.0) for node in unlabeled])

    def _optimize(self, potentials: Potentials) -> List[EvidenceAtom]:
        self._log_summary()
        labeled, unlabeled = self.labeled_nodes, self.unlabeled_nodes
        W, D = self._connect(self.nodes, unlabeled)

        start = time.perf_counter()
        y = np.array([node.value for node in labeled])
        solution = self.solver.solve(W, D, y, self._prior(potentials, unlabeled))[len(labeled):]
        states = [TriState.from_value(value) for value in solution]
        logger.info("Labeling solution found in %.3fs", time.perf_counter() - start)
        logger.debug("\n".join(f"{n.query.to_text()} = {v}" for n, v in zip(unlabeled, solution)))
        return self._labels_to_atoms(unlabeled, states)


class NNGraph(SupervisionGraph):
    """未标注节点只与带标签节点相连，按缓存次数投票。"""

    def _optimize(self, potentials: Potentials) -> List[EvidenceAtom]:
        self._log_summary()
        labeled, unlabeled = self.labeled_nodes, self.unlabeled_nodes

        start = time.perf_counter()
        W = self.connector.bi_connect(unlabeled, labeled, self.metric)
        logger.info("Graph connected in %.3fs", time.perf_counter() - start)

        start = time.perf_counter()
        labels = nearest_neighbor_labels(W, labeled, self.cache)
        logger.info("Labeling solution found in %.3fs", time.perf_counter() - start)
        return self._labels_to_atoms(unlabeled, labels)


class ExtNNGraph(SupervisionGraph):
    """扩展近邻：在全连接图（带标签节点之间也相连）上计算类条件统计量。"""

    def _optimize(self, potentials: Potentials) -> List[EvidenceAtom]:
        self._log_summary()
        full = GraphConnector(ConnectorKind.full, connect_labeled=True, workers=self.connector.workers)

        start = time.perf_counter()
        W, _ = full.fully_connect(self.nodes, self.metric)
        logger.info("Graph connected in %.3fs", time.perf_counter() - start)

        start = time.perf_counter()
        labels = extended_nearest_neighbor_labels(W, self.nodes, self.number_of_labeled, self.connector.make_sparse)
        logger.info("Labeling solution found in %.3fs", time.perf_counter() - start)
        return self._labels_to_atoms(self.unlabeled_nodes, labels)
