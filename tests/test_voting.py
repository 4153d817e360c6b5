import numpy as np
import pytest

from supervision_graph.core.cache import NodeCache
from supervision_graph.core.connector import ConnectorKind, GraphConnector
from supervision_graph.core.metric import BinaryMetric
from supervision_graph.core.voting import extended_nearest_neighbor_labels, nearest_neighbor_vote
from supervision_graph.errors import CacheMissError
from supervision_graph.models.logic import Atom, AtomSignature, Clause, EvidenceAtom, Literal, TriState, Variable
from supervision_graph.models.node import Node

SIGNATURE = AtomSignature("Target", 1)


def _node(name, symbols, state=TriState.unknown):
    x = Variable("x0", "person")
    query = EvidenceAtom.of("Target", name, state=state)
    evidence = tuple(EvidenceAtom.of(s, name) for s in symbols)
    head = Atom("Target", (x,))
    body = Clause.of(Literal(Atom(s, (x,)), False) for s in symbols)
    clause = None if state == TriState.unknown else Clause(body.literals | {Literal(head, state == TriState.true)})
    return Node(query, evidence, clause, body, head)


def test_majority_of_cached_counts_wins():
    positive = _node("p", ["A"], TriState.true)
    negative = _node("n", ["B"], TriState.false)
    cache = NodeCache(SIGNATURE).merge([positive, _node("p2", ["A"], TriState.true), _node("p3", ["A"], TriState.true), negative])

    assert nearest_neighbor_vote(np.array([0.2, 0.9]), [positive, negative], cache)


def test_tie_is_broken_by_the_strongest_neighbor():
    positive = _node("p", ["A"], TriState.true)
    negative = _node("n", ["B"], TriState.false)
    cache = NodeCache(SIGNATURE).merge([positive, negative])

    assert not nearest_neighbor_vote(np.array([0.4, 0.9]), [positive, negative], cache)
    assert nearest_neighbor_vote(np.array([0.9, 0.4]), [positive, negative], cache)


def test_no_neighbors_means_negative():
    positive = _node("p", ["A"], TriState.true)
    cache = NodeCache(SIGNATURE).merge([positive])
    assert not nearest_neighbor_vote(np.array([0.0]), [positive], cache)


def test_uncached_neighbor_is_fatal():
    positive = _node("p", ["A"], TriState.true)
    with pytest.raises(CacheMissError):
        nearest_neighbor_vote(np.array([1.0]), [positive], NodeCache(SIGNATURE))


def test_extended_statistics_follow_the_similar_class():
    nodes = [_node("p", ["A"], TriState.true), _node("n", ["B"], TriState.false), _node("u", ["A"])]
    full = GraphConnector(ConnectorKind.full, connect_labeled=True)
    W, _ = full.fully_connect(nodes, BinaryMetric())

    assert extended_nearest_neighbor_labels(W, nodes, 2, full.make_sparse) == [True]

    nodes[2] = _node("u", ["B"])
    W, _ = full.fully_connect(nodes, BinaryMetric())
    assert extended_nearest_neighbor_labels(W, nodes, 2, full.make_sparse) == [False]
