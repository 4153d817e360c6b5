"""图节点：一个目标地原子及其支撑证据。"""

from __future__ import annotations

from dataclasses import dataclass, replace
from functools import cached_property
from typing import Dict, FrozenSet, Iterable, List, Set, Tuple

from ..errors import PatternError
from .logic import Atom, AtomSignature, Clause, Constant, EvidenceAtom, Feature, Literal, TriState, Variable


@dataclass(frozen=True)
class Node:
    """节点是不可变值。

    - query: 目标地原子，其 state 即节点标签
    - evidence: 与目标共享常量的证据地原子
    - clause: 带标签节点的子句形式（体 + 头文字），未标注节点为 None
    - body: 证据的提升析取（证据为真时以负文字出现）
    - head: 目标原子的提升模板
    - order_index: 目标原子中作为时序键的参数位置，-1 表示无
    - partition_indices: 划分键所在的参数位置
    - similar_atoms: 合一意义下重复的目标原子，必须与本节点同时标注
    """

    query: EvidenceAtom
    evidence: Tuple[EvidenceAtom, ...]
    clause: Clause | None
    body: Clause | None
    head: Atom
    order_index: int = -1
    partition_indices: Tuple[int, ...] = ()
    similar_atoms: Tuple[EvidenceAtom, ...] = ()

    # --- 标签相关 ---

    @property
    def label(self) -> TriState:
        return self.query.state

    @property
    def value(self) -> float:
        return self.label.numeric

    @property
    def is_labeled(self) -> bool:
        return self.label != TriState.unknown

    @property
    def is_unlabeled(self) -> bool:
        return self.label == TriState.unknown

    @property
    def is_positive(self) -> bool:
        return self.label == TriState.true

    @property
    def is_negative(self) -> bool:
        return self.label == TriState.false

    @property
    def size(self) -> int:
        return len(self.evidence)

    @property
    def is_empty(self) -> bool:
        return not self.evidence

    @property
    def cluster_size(self) -> int:
        return len(self.similar_atoms) + 1

    # --- 结构视图 ---

    @cached_property
    def ordering_key(self) -> int:
        if self.order_index > -1:
            return int(self.query.constants[self.order_index].symbol)
        return 0

    @cached_property
    def partition_terms(self) -> FrozenSet[Constant]:
        if not self.partition_indices:
            return frozenset(self.query.constants)
        return frozenset(self.query.constants[i] for i in self.partition_indices)

    @cached_property
    def signatures(self) -> FrozenSet[AtomSignature]:
        return frozenset(e.signature for e in self.evidence)

    @cached_property
    def literals(self) -> FrozenSet[Literal]:
        if self.body is None:
            raise PatternError(f"node {self.query.to_text()} has no body")
        return self.body.literals

    @cached_property
    def atoms(self) -> Tuple[Atom, ...]:
        return tuple(sorted((l.atom for l in self.literals), key=lambda a: a.to_text()))

    @cached_property
    def features(self) -> FrozenSet[Feature]:
        return frozenset(Feature.of(atom) for atom in self.atoms)

    @cached_property
    def pattern(self) -> Clause:
        """用于判等的子句：带标签节点即 clause，未标注节点为体加正的头文字。"""

        if self.clause is not None:
            return self.clause
        return Clause(self.literals | {Literal(self.head, True)})

    # --- 派生节点 ---

    def label_using_value(self, value: TriState | bool) -> Tuple[EvidenceAtom, ...]:
        """本节点及其全部重复目标原子一起标注。"""

        state = TriState.from_bool(value) if isinstance(value, bool) else value
        labeled = [atom.with_state(state) for atom in self.similar_atoms]
        labeled.append(self.query.with_state(state))
        return tuple(labeled)

    def to_positive(self) -> "Node":
        if self.is_positive:
            return self
        return replace(
            self,
            query=self.query.with_state(TriState.true),
            clause=Clause(self.literals | {Literal(self.head, True)}),
        )

    def to_negative(self) -> "Node":
        if self.is_negative:
            return self
        return replace(
            self,
            query=self.query.with_state(TriState.false),
            clause=Clause(self.literals | {Literal(self.head, False)}),
        )

    @property
    def opposite(self) -> "Node":
        return self.to_negative() if self.is_positive else self.to_positive()

    def generalise(self, features: Iterable[Feature]) -> "Node":
        """去掉与给定特征匹配的证据与文字。"""

        features = tuple(features)

        def dropped(atom) -> bool:
            return any(f.matches(atom) for f in features)

        return replace(
            self,
            evidence=tuple(e for e in self.evidence if not dropped(e)),
            clause=None if self.clause is None else self.clause.filter(
                lambda l: l.atom == self.head or not dropped(l.atom)
            ),
            body=None if self.body is None else self.body.filter(lambda l: not dropped(l.atom)),
        )

    def sub_nodes(self) -> Tuple["Node", ...]:
        """沿多值论域拆分：论域中每个 (变量, 常量) 对应一个子节点。"""

        positions: Dict[str, List[int]] = {}
        for position, term in enumerate(self.head.terms):
            if isinstance(term, Variable):
                positions.setdefault(term.domain, []).append(position)

        result: Dict[Node, None] = {}
        for domain, indices in positions.items():
            variables = {self.head.terms[i] for i in indices}
            constants = {self.query.constants[i] for i in indices}
            if len(variables) < 2 or len(constants) < 2:
                continue
            for i in indices:
                variable, constant = self.head.terms[i], self.query.constants[i]
                other_constants = constants - {constant}
                other_variables = variables - {variable}
                sub_evidence = tuple(
                    e
                    for e in self.evidence
                    if constant in e.constants and not other_constants.intersection(e.constants)
                )
                kept: Set[Atom] = {
                    a
                    for a in self.atoms
                    if variable in a.variables and not other_variables.intersection(a.variables)
                }
                sub = replace(
                    self,
                    evidence=sub_evidence,
                    clause=None if self.clause is None else self.clause.filter(
                        lambda l: l.atom in kept or l.atom == self.head
                    ),
                    body=None if self.body is None else self.body.filter(lambda l: l.atom in kept),
                )
                result.setdefault(sub, None)
        return tuple(result)

    def augment(self) -> Tuple["Node", ...]:
        """原节点加上全部非空子节点（强制为负），用于充实稀薄的带标签集合。"""

        subs = tuple(sub.to_negative() for sub in self.sub_nodes() if not sub.is_empty)
        return (self,) + subs

    # --- 包含关系 ---

    def subsumes(self, other: "Node") -> bool:
        return self.pattern.subsumes(other.pattern)

    def soft_subsumes(self, other: "Node") -> bool:
        """多重集意义下的贪心包含：self 的每个原子在 other 中找一个重命名相同的原子，不回溯。"""

        if self.size > other.size:
            return False
        signatures = {a.signature for a in self.atoms}
        remaining = [a for a in other.atoms if a.signature in signatures]
        for atom in self.atoms:
            match = next((candidate for candidate in remaining if candidate.matches(atom)), None)
            if match is None:
                return False
            remaining.remove(match)
        return True

    # --- 排序与展示 ---

    def __lt__(self, other: "Node") -> bool:
        # 按时序键降序
        return self.ordering_key > other.ordering_key

    def to_text(self) -> str:
        body = " ^ ".join(
            l.negate().to_text()
            for l in sorted(self.literals, key=lambda l: (len(l.atom.terms), l.atom.symbol, l.to_text()))
        )
        if self.is_unlabeled:
            return f"? :- {body}"
        prefix = "!" if self.is_negative else ""
        return f"{prefix}{self.head.to_text()} :- {body}"
