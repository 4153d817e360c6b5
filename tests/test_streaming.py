import numpy as np
import pytest

from supervision_graph.config import SupervisionConfig
from supervision_graph.core import BinaryMetric, ConnectorKind, GraphConnector, NodeCache, create_graph
from supervision_graph.core.streaming import StreamingGraphManager
from supervision_graph.errors import ConfigurationError
from supervision_graph.models.annotation import Annotation
from supervision_graph.models.logic import Atom, AtomSignature, Clause, EvidenceAtom, Literal, TriState, Variable
from supervision_graph.models.modes import KnowledgeBase
from supervision_graph.models.node import Node

TARGET = AtomSignature("Target", 2)
KB = KnowledgeBase({TARGET: ("person", "time")})


def _node(name, t, symbols, state=TriState.unknown):
    x, time = Variable("x0", "person"), Variable("x1", "time")
    query = EvidenceAtom.of("Target", name, str(t), state=state)
    evidence = tuple(EvidenceAtom.of(s, name) for s in symbols)
    head = Atom("Target", (x, time))
    body = Clause.of(Literal(Atom(s, (x,)), False) for s in symbols)
    clause = None if state == TriState.unknown else Clause(body.literals | {Literal(head, state == TriState.true)})
    return Node(query, evidence, clause, body, head, order_index=1)


class _FixedSource:
    """按顺序返回预先构造好的批次。"""

    def __init__(self, *batches):
        self.batches = list(batches)

    def partition(self, kb, annotation, modes, signature):
        return self.batches.pop(0)


def _config(**overrides):
    return SupervisionConfig(graph_kind="streaming", connector_kind="knn_temporal", memory=2, **overrides)


def _run(graph):
    return graph.extend(KB, Annotation(TARGET), {})


def test_streaming_requires_temporal_connector():
    with pytest.raises(ConfigurationError):
        create_graph(SupervisionConfig(graph_kind="streaming", connector_kind="knn"), TARGET)
    with pytest.raises(ConfigurationError):
        StreamingGraphManager(
            [], TARGET, GraphConnector(ConnectorKind.full), BinaryMetric(), Annotation(TARGET), NodeCache(TARGET), _config()
        )


def test_temporal_connector_needs_ordering_index():
    unordered = Node(
        EvidenceAtom.of("Target", "a", "2"),
        (EvidenceAtom.of("A", "a"),),
        None,
        Clause.of([Literal(Atom("A", (Variable("x0", "person"),)), False)]),
        Atom("Target", (Variable("x0", "person"), Variable("x1", "time"))),
    )
    graph = create_graph(_config(), TARGET, grounder=_FixedSource([_node("p", 1, ["A"], TriState.true), unordered]))

    with pytest.raises(ConfigurationError):
        _run(graph)


def test_first_batch_is_labeled_through_the_sinks():
    ua, ub = _node("a", 2, ["A"]), _node("b", 3, ["B"])
    source = _FixedSource(
        [_node("p", 1, ["A"], TriState.true), _node("n", 1, ["B"], TriState.false), ua, ub]
    )
    graph = _run(create_graph(_config(), TARGET, grounder=source))

    atoms, _ = graph.complete_supervision()
    states = {atom.constants[0].symbol: atom.state for atom in atoms}
    assert states == {"a": TriState.true, "b": TriState.false}

    W, D = graph._expanded
    assert W.shape == (4, 4)
    np.testing.assert_allclose(W, W.T)
    np.testing.assert_allclose(np.diag(D), W.sum(axis=1))


def test_window_and_synopsis_stay_bounded():
    labeled = [_node("p", 1, ["A"], TriState.true), _node("n", 1, ["B"], TriState.false)]
    source = _FixedSource(
        labeled + [_node("a", 2, ["A"]), _node("b", 3, ["B"])],
        [_node("c", 4, ["A"]), _node("d", 5, ["B"]), _node("e", 6, ["A"])],
        [_node("f", 7, ["B"])],
    )
    first = _run(create_graph(_config(), TARGET, grounder=source))
    assert first.retained.shape == (2, 2)

    second = _run(first)
    assert [n.query.constants[0].symbol for n in second.stored_unlabeled] == ["a", "b"]
    assert second.retained.shape == (4, 4)
    np.testing.assert_allclose(second.retained, second.retained.T)

    third = _run(second)
    assert [n.query.constants[0].symbol for n in third.stored_unlabeled] == ["d", "e"]
    assert third.retained.shape == (4, 4)
    assert first.retained.shape == (2, 2)

    atoms, _ = third.complete_supervision()
    assert len(atoms) == 1


def test_sink_mass_counts_as_supervision():
    stored = _node("a", 3, ["A"])
    retained = np.zeros((3, 3))
    retained[1, 2] = retained[2, 1] = 1.0
    graph = StreamingGraphManager(
        [_node("c", 4, ["A"])],
        TARGET,
        GraphConnector(ConnectorKind.knn_temporal),
        BinaryMetric(),
        Annotation(TARGET),
        NodeCache(TARGET),
        _config(),
        stored_unlabeled=[stored],
        retained=retained,
    )

    atoms, _ = graph.complete_supervision()
    assert {a.to_text(): a.state for a in atoms} == {"Target(c,4)": TriState.true}


def test_retained_matrix_must_match_window():
    with pytest.raises(ValueError):
        StreamingGraphManager(
            [],
            TARGET,
            GraphConnector(ConnectorKind.knn_temporal),
            BinaryMetric(),
            Annotation(TARGET),
            NodeCache(TARGET),
            _config(),
            stored_unlabeled=[_node("a", 3, ["A"])],
            retained=np.zeros((2, 2)),
        )
