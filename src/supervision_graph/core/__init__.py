"""图构建、求解与编排。"""

from __future__ import annotations

from typing import Sequence

from ..config import SupervisionConfig
from ..errors import ConfigurationError
from ..models.annotation import Annotation
from ..models.logic import AtomSignature
from ..models.node import Node
from .cache import NodeCache
from .connector import ConnectorKind, GraphConnector
from .grounding import NodeSource, SimpleGrounder
from .metric import MATCHERS, BinaryMetric, Metric
from .selection import Clustering, FeatureSelector
from .solver import GraphSolver, SolverKind
from .streaming import StreamingGraphManager
from .supervision_graph import ExtNNGraph, NNGraph, SpliceGraph, SupervisionGraph, is_subsumed

GRAPHS = {
    "splice": SpliceGraph,
    "nn": NNGraph,
    "ext_nn": ExtNNGraph,
    "streaming": StreamingGraphManager,
}


def create_connector(config: SupervisionConfig) -> GraphConnector:
    try:
        kind = ConnectorKind(config.connector_kind)
    except ValueError as error:
        raise ConfigurationError(f"unknown connector kind: {config.connector_kind}") from error
    return GraphConnector(kind, k=config.k, epsilon=config.epsilon, workers=config.workers)


def create_graph(
    config: SupervisionConfig,
    signature: AtomSignature,
    *,
    metric: Metric | None = None,
    nodes: Sequence[Node] = (),
    cache: NodeCache | None = None,
    annotation: Annotation | None = None,
    grounder: NodeSource | None = None,
    selector: FeatureSelector | None = None,
) -> SupervisionGraph:
    """按配置创建监督图；默认从空图开始，由 extend 逐批加入数据。"""

    config.validate()
    graph_type = GRAPHS.get(config.graph_kind)
    if graph_type is None:
        raise ConfigurationError(f"unknown graph kind: {config.graph_kind}")
    if config.solver_kind not in SolverKind.__members__:
        raise ConfigurationError(f"unknown solver kind: {config.solver_kind}")
    if config.matcher not in MATCHERS:
        raise ConfigurationError(f"unknown matcher: {config.matcher}")
    if config.enable_selection and selector is None:
        raise ConfigurationError("feature selection is enabled but no selector was given")

    if cache is None:
        cache = NodeCache(
            signature,
            prune_contradictions=config.prune_contradictions,
            use_hoeffding_bound=config.use_hoeffding_bound,
        ).merge(nodes)
    return graph_type(
        nodes,
        signature,
        create_connector(config),
        metric or BinaryMetric(MATCHERS[config.matcher]),
        annotation or Annotation(signature),
        cache,
        config,
        grounder=grounder or SimpleGrounder(cluster_unlabeled=config.enable_clusters),
        selector=selector,
    )


__all__ = [
    "BinaryMetric",
    "Clustering",
    "ConnectorKind",
    "ExtNNGraph",
    "FeatureSelector",
    "GraphConnector",
    "GraphSolver",
    "Metric",
    "NNGraph",
    "NodeCache",
    "NodeSource",
    "SimpleGrounder",
    "SolverKind",
    "SpliceGraph",
    "StreamingGraphManager",
    "SupervisionGraph",
    "create_connector",
    "create_graph",
    "is_subsumed",
]
