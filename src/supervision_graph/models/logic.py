"""一阶逻辑最小模型：常量、变量、原子、文字与子句。

节点的证据以地原子（EvidenceAtom）给出，节点的模式以提升后的子句（Clause）给出。
缓存判等依赖“变量重命名意义下相同”（variant），背景知识检查依赖 theta 包含（subsumption）。
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Tuple, Union


class TriState(str, Enum):
    """三值真值。

    true: 已知为真
    false: 已知为假
    unknown: 未标注
    """

    true = "true"
    false = "false"
    unknown = "unknown"

    @property
    def numeric(self) -> float:
        if self is TriState.true:
            return 1.0
        if self is TriState.false:
            return -1.0
        return 0.0

    @classmethod
    def from_value(cls, value: float) -> "TriState":
        """求解值转真值：不大于 0（未连接哨兵）即为假。"""

        return cls.false if value <= 0.0 else cls.true

    @classmethod
    def from_bool(cls, value: bool) -> "TriState":
        return cls.true if value else cls.false


@dataclass(frozen=True)
class Constant:
    symbol: str

    def to_text(self) -> str:
        return self.symbol


@dataclass(frozen=True)
class Variable:
    symbol: str
    # 变量所属论域，重命名时必须保持一致
    domain: str = ""

    def to_text(self) -> str:
        return self.symbol


Term = Union[Constant, Variable]


@dataclass(frozen=True)
class AtomSignature:
    symbol: str
    arity: int

    def __str__(self) -> str:
        return f"{self.symbol}/{self.arity}"


@dataclass(frozen=True)
class Atom:
    """提升原子：项可以是常量或变量。"""

    symbol: str
    terms: Tuple[Term, ...]

    @property
    def signature(self) -> AtomSignature:
        return AtomSignature(self.symbol, len(self.terms))

    @property
    def variables(self) -> Tuple[Variable, ...]:
        seen: Dict[Variable, None] = {}
        for term in self.terms:
            if isinstance(term, Variable):
                seen.setdefault(term, None)
        return tuple(seen)

    @property
    def constants(self) -> Tuple[Constant, ...]:
        return tuple(term for term in self.terms if isinstance(term, Constant))

    @property
    def is_ground(self) -> bool:
        return all(isinstance(term, Constant) for term in self.terms)

    def substitute(self, theta: Dict[Variable, Term]) -> "Atom":
        return Atom(self.symbol, tuple(theta.get(t, t) if isinstance(t, Variable) else t for t in self.terms))

    def matches(self, other: "Atom") -> bool:
        """重命名意义下相同（常量逐位相等，变量之间存在双射）。"""

        return _unify(self, other, {}, injective=True, rename_only=True) is not None

    def to_text(self) -> str:
        return f"{self.symbol}({','.join(term.to_text() for term in self.terms)})"


@dataclass(frozen=True)
class EvidenceAtom:
    """带真值的地原子。"""

    symbol: str
    constants: Tuple[Constant, ...]
    state: TriState = TriState.true

    @classmethod
    def of(cls, symbol: str, *constants: str, state: TriState = TriState.true) -> "EvidenceAtom":
        return cls(symbol, tuple(Constant(c) for c in constants), state)

    @property
    def signature(self) -> AtomSignature:
        return AtomSignature(self.symbol, len(self.constants))

    @property
    def key(self) -> Tuple[str, Tuple[str, ...]]:
        """与真值无关的身份键。"""

        return self.symbol, tuple(c.symbol for c in self.constants)

    @property
    def terms(self) -> Tuple[Constant, ...]:
        return self.constants

    def with_state(self, state: TriState) -> "EvidenceAtom":
        return EvidenceAtom(self.symbol, self.constants, state)

    def as_atom(self) -> Atom:
        return Atom(self.symbol, self.constants)

    def to_text(self) -> str:
        return f"{self.symbol}({','.join(c.symbol for c in self.constants)})"


@dataclass(frozen=True)
class Literal:
    atom: Atom
    positive: bool = True

    @property
    def signature(self) -> AtomSignature:
        return self.atom.signature

    def negate(self) -> "Literal":
        return Literal(self.atom, not self.positive)

    def substitute(self, theta: Dict[Variable, Term]) -> "Literal":
        return Literal(self.atom.substitute(theta), self.positive)

    def to_text(self) -> str:
        return self.atom.to_text() if self.positive else f"!{self.atom.to_text()}"


@dataclass(frozen=True)
class Clause:
    """文字的析取，文字集合无序。"""

    literals: FrozenSet[Literal]

    @classmethod
    def of(cls, literals: Iterable[Literal]) -> "Clause":
        return cls(frozenset(literals))

    def __len__(self) -> int:
        return len(self.literals)

    @property
    def variables(self) -> FrozenSet[Variable]:
        return frozenset(v for literal in self.literals for v in literal.atom.variables)

    def filter(self, keep) -> "Clause":
        return Clause(frozenset(literal for literal in self.literals if keep(literal)))

    def pattern_key(self) -> Tuple:
        """重命名不变的散列键：变量只保留论域，常量保留符号。"""

        shapes = sorted(
            (
                literal.positive,
                literal.atom.symbol,
                tuple(
                    ("v", term.domain) if isinstance(term, Variable) else ("c", term.symbol)
                    for term in literal.atom.terms
                ),
            )
            for literal in self.literals
        )
        return tuple(shapes), len(self.variables)

    def is_variant(self, other: "Clause") -> bool:
        """两个子句在变量重命名意义下相同。"""

        if len(self.literals) != len(other.literals):
            return False
        if len(self.variables) != len(other.variables):
            return False
        return _search(_ordered(self.literals), list(other.literals), {}, injective=True, rename_only=True)

    def subsumes(self, other: "Clause") -> bool:
        """theta 包含：存在替换 theta 使 self·theta 是 other 的子集。"""

        if len(self.literals) > len(other.literals):
            return False
        return _search(_ordered(self.literals), list(other.literals), {}, injective=False, rename_only=False)

    def to_text(self) -> str:
        return " v ".join(sorted(literal.to_text() for literal in self.literals))


@dataclass(frozen=True)
class Feature:
    """特征：谓词签名加上必须出现的常量参数。"""

    signature: AtomSignature
    constant_args: FrozenSet[str] = frozenset()

    @classmethod
    def of(cls, atom: Union[Atom, EvidenceAtom]) -> "Feature":
        return cls(atom.signature, frozenset(c.symbol for c in atom.constants))

    def matches(self, atom: Union[Atom, EvidenceAtom]) -> bool:
        if atom.signature != self.signature:
            return False
        symbols = {c.symbol for c in atom.constants}
        return self.constant_args <= symbols

    def __str__(self) -> str:
        if not self.constant_args:
            return str(self.signature)
        return f"{self.signature}[{','.join(sorted(self.constant_args))}]"


def _ordered(literals: FrozenSet[Literal]) -> List[Literal]:
    # 常量多的文字候选少，先匹配以尽早剪枝
    return sorted(literals, key=lambda l: (-len(l.atom.constants), l.atom.symbol, l.positive))


def _unify(
    source: Atom,
    target: Atom,
    theta: Dict[Variable, Term],
    *,
    injective: bool,
    rename_only: bool,
) -> Dict[Variable, Term] | None:
    if source.symbol != target.symbol or len(source.terms) != len(target.terms):
        return None
    result = dict(theta)
    for s_term, t_term in zip(source.terms, target.terms):
        if isinstance(s_term, Constant):
            if s_term != t_term:
                return None
            continue
        if rename_only and (not isinstance(t_term, Variable) or t_term.domain != s_term.domain):
            return None
        bound = result.get(s_term)
        if bound is None:
            if injective and t_term in result.values():
                return None
            result[s_term] = t_term
        elif bound != t_term:
            return None
    return result


def _search(
    source: List[Literal],
    targets: List[Literal],
    theta: Dict[Variable, Term],
    *,
    injective: bool,
    rename_only: bool,
) -> bool:
    if not source:
        return True
    head, rest = source[0], source[1:]
    for candidate in targets:
        if candidate.positive != head.positive:
            continue
        extended = _unify(head.atom, candidate.atom, theta, injective=injective, rename_only=rename_only)
        if extended is not None and _search(rest, targets, extended, injective=injective, rename_only=rename_only):
            return True
    return False
