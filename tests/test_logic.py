from supervision_graph.models.logic import (
    Atom,
    AtomSignature,
    Clause,
    Constant,
    EvidenceAtom,
    Feature,
    Literal,
    TriState,
    Variable,
)


def _var(name, domain="obj"):
    return Variable(name, domain)


def _neg(symbol, *terms):
    return Literal(Atom(symbol, tuple(terms)), False)


def test_variant_up_to_renaming():
    x, y, u, v = _var("x"), _var("y"), _var("u"), _var("v")
    left = Clause.of([_neg("A", x, y), _neg("B", y)])
    right = Clause.of([_neg("A", u, v), _neg("B", v)])
    crossed = Clause.of([_neg("A", u, v), _neg("B", u)])

    assert left.is_variant(right)
    assert left.pattern_key() == right.pattern_key()
    assert not left.is_variant(crossed)


def test_variant_respects_domains_and_constants():
    x = _var("x", "person")
    z = _var("z", "time")
    assert not Clause.of([_neg("A", x)]).is_variant(Clause.of([_neg("A", z)]))

    walk, run = Constant("walk"), Constant("run")
    assert not Clause.of([_neg("H", walk, x)]).is_variant(Clause.of([_neg("H", run, x)]))
    assert Clause.of([_neg("H", walk, x)]).is_variant(Clause.of([_neg("H", walk, _var("w", "person"))]))


def test_subsumption():
    x, y = _var("x"), _var("y")
    general = Clause.of([_neg("A", x)])
    specific = Clause.of([_neg("A", y), _neg("B", y)])
    ground = Clause.of([_neg("A", Constant("c1")), _neg("B", Constant("c1"))])

    assert general.subsumes(specific)
    assert general.subsumes(ground)
    assert not specific.subsumes(general)
    assert not Clause.of([Literal(Atom("A", (x,)), True)]).subsumes(specific)


def test_atom_matches_under_renaming():
    x, y = _var("x"), _var("y")
    assert Atom("C", (x, y)).matches(Atom("C", (y, x)))
    assert not Atom("C", (x, x)).matches(Atom("C", (x, y)))


def test_tristate_from_value():
    assert TriState.from_value(0.0) == TriState.false
    assert TriState.from_value(-0.3) == TriState.false
    assert TriState.from_value(1e-9) == TriState.true
    assert TriState.true.numeric == 1.0
    assert TriState.unknown.numeric == 0.0


def test_feature_matching():
    atom = EvidenceAtom.of("Happens", "walk", "id1")
    assert Feature(AtomSignature("Happens", 2)).matches(atom)
    assert Feature(AtomSignature("Happens", 2), frozenset({"walk"})).matches(atom)
    assert not Feature(AtomSignature("Happens", 2), frozenset({"run"})).matches(atom)
    assert Feature.of(atom) == Feature(AtomSignature("Happens", 2), frozenset({"walk", "id1"}))
