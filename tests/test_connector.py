import numpy as np
import pytest

from supervision_graph.core.connector import UNCONNECTED, ConnectorKind, GraphConnector
from supervision_graph.models.logic import Atom, Clause, EvidenceAtom, Literal, TriState, Variable
from supervision_graph.models.node import Node


class _ValueMetric:
    """证据为单个 Value(v)，距离为 |vx - vy|（截断到 1）。"""

    uses_evidence = True

    def distance(self, xs, ys):
        x = float(xs[0].constants[0].symbol)
        y = float(ys[0].constants[0].symbol)
        return min(1.0, abs(x - y))

    def having_weights(self, weights):
        return self


def _node(name, value, state=TriState.unknown, key=0):
    x, t = Variable("x0", "person"), Variable("t0", "time")
    query = EvidenceAtom.of("Target", name, str(key), state=state)
    evidence = (EvidenceAtom.of("Value", str(value)),)
    head = Atom("Target", (x, t))
    body = Clause.of([Literal(Atom("Value", (x,)), False)])
    clause = None if state == TriState.unknown else Clause(body.literals | {Literal(head, state == TriState.true)})
    return Node(query, evidence, clause, body, head, order_index=1)


def _mixed_nodes():
    return [
        _node("l1", 0.1, TriState.true),
        _node("l2", 0.9, TriState.false),
        _node("u1", 0.2, key=1),
        _node("u2", 0.3, key=2),
        _node("u3", 0.7, key=3),
        _node("u4", 0.5, key=5),
    ]


@pytest.mark.parametrize("kind", list(ConnectorKind))
def test_every_connector_is_symmetric_without_self_loops(kind):
    W, D = GraphConnector(kind, k=2, epsilon=0.6).fully_connect(_mixed_nodes(), _ValueMetric())

    np.testing.assert_array_equal(W, W.T)
    np.testing.assert_array_equal(np.diag(W), np.zeros(len(W)))
    np.testing.assert_allclose(np.diag(D), W.sum(axis=1))


def test_full_connector_keeps_exact_weights():
    nodes, metric = _mixed_nodes(), _ValueMetric()
    connector = GraphConnector(ConnectorKind.full)
    W, _ = connector.fully_connect(nodes, metric)

    for i in range(len(nodes)):
        for j in range(len(nodes)):
            if i != j:
                assert W[i, j] == connector.connect(nodes[i], nodes[j], metric)
    assert W[0, 1] == UNCONNECTED


@pytest.mark.parametrize("k", [1, 2, 3, 4, 5, 6, 7])
def test_knn_keeps_k_largest_distinct_weights(k):
    row = np.array([0.0, 0.9, 0.8, 0.7, 0.6, 0.5])
    sparse = GraphConnector(ConnectorKind.knn, k=k).make_sparse(row)

    kept = sparse[sparse > 0]
    assert len(kept) == min(k, 5)
    np.testing.assert_array_equal(np.sort(kept)[::-1], row[1 : 1 + min(k, 5)])


def test_enn_zeroes_strictly_below_epsilon():
    row = np.array([0.2, 0.5, 0.75, 0.9])
    sparse = GraphConnector(ConnectorKind.enn, epsilon=0.75).make_sparse(row)
    np.testing.assert_array_equal(sparse, [0.0, 0.0, 0.75, 0.9])


def test_labeled_variants_only_touch_the_labeled_prefix():
    row = np.array([0.9, 0.5, 0.4, 0.3])
    sparse = GraphConnector(ConnectorKind.knn_labeled, k=1).make_sparse(row, 2)
    np.testing.assert_array_equal(sparse, [0.9, 0.0, 0.4, 0.3])

    sparse = GraphConnector(ConnectorKind.enn_labeled, epsilon=0.6).make_sparse(row, 2)
    np.testing.assert_array_equal(sparse, [0.9, 0.0, 0.4, 0.3])


def test_adaptive_keeps_smallest_prefix_reaching_a_third_of_the_mass():
    dominant = np.array([0.9, 0.5, 0.1])
    np.testing.assert_array_equal(GraphConnector(ConnectorKind.ann).make_sparse(dominant), [0.9, 0.0, 0.0])

    flat = np.array([0.2, 0.2, 0.19, 0.18, 0.17])
    sparse = GraphConnector(ConnectorKind.ann).make_sparse(flat)
    np.testing.assert_array_equal(sparse, [0.2, 0.2, 0.19, 0.0, 0.0])


def test_temporal_connector_links_consecutive_unlabeled_only():
    connector = GraphConnector(ConnectorKind.knn_temporal, k=2)
    metric = _ValueMetric()
    first, second, third = _node("a", 0.2, key=1), _node("b", 0.2, key=2), _node("c", 0.2, key=3)

    assert connector.connect(first, second, metric) == 1.0
    assert connector.connect(first, third, metric) == UNCONNECTED
    labeled = _node("l", 0.2, TriState.true, key=9)
    assert connector.connect(labeled, third, metric) == 1.0
    assert connector.connect(labeled, _node("m", 0.2, TriState.false), metric) == UNCONNECTED


def test_labeled_pairs_connect_only_on_request():
    metric = _ValueMetric()
    left, right = _node("l1", 0.1, TriState.true), _node("l2", 0.1, TriState.false)
    assert GraphConnector().connect(left, right, metric) == UNCONNECTED
    assert GraphConnector(connect_labeled=True).connect(left, right, metric) == 1.0


@pytest.mark.parametrize("kind", [ConnectorKind.full, ConnectorKind.knn_labeled, ConnectorKind.enn, ConnectorKind.ann])
def test_smart_connect_matches_full_connect(kind):
    nodes, metric = _mixed_nodes(), _ValueMetric()
    connector = GraphConnector(kind, k=2, epsilon=0.6)

    full_W, full_D = connector.fully_connect(nodes, metric)
    smart_W, smart_D = connector.smart_connect(nodes, nodes[2:], metric)

    np.testing.assert_array_equal(smart_W[2:], full_W[2:])
    np.testing.assert_array_equal(smart_D, full_D)


def test_bi_connect_is_rectangular():
    nodes, metric = _mixed_nodes(), _ValueMetric()
    W = GraphConnector(ConnectorKind.full).bi_connect(nodes[2:], nodes[:2], metric)

    assert W.shape == (4, 2)
    assert W[0, 0] == pytest.approx(0.9)
    assert W[0, 1] == pytest.approx(0.3)


def test_parallel_connection_matches_sequential():
    nodes, metric = _mixed_nodes(), _ValueMetric()
    sequential, _ = GraphConnector(ConnectorKind.knn, k=2).fully_connect(nodes, metric)
    parallel, _ = GraphConnector(ConnectorKind.knn, k=2, workers=4).fully_connect(nodes, metric)
    np.testing.assert_array_equal(sequential, parallel)


def test_synopsis_of_star_redistributes_the_hub():
    a, b = 0.6, 0.3
    W = np.array(
        [
            [0.0, a, b],
            [a, 0.0, 0.0],
            [b, 0.0, 0.0],
        ]
    )
    reduced = GraphConnector.synopsis_of(W, 0, 2)

    assert reduced.shape == (2, 2)
    assert reduced[0, 1] == pytest.approx(a * b / (a + b))
    assert reduced[1, 0] == pytest.approx(a * b / (a + b))
    np.testing.assert_array_equal(np.diag(reduced), [0.0, 0.0])


def test_synopsis_keeps_leading_rows_and_bounds_size():
    W = np.ones((6, 6)) - np.eye(6)
    reduced = GraphConnector.synopsis_of(W, 2, 2)
    assert reduced.shape == (4, 4)
    np.testing.assert_allclose(reduced, reduced.T)
    assert np.all(reduced[:2, :2][~np.eye(2, dtype=bool)] > 1.0)
