"""默认的节点来源：把知识库批次与部分标注切分为节点序列。"""

from __future__ import annotations

import time
from dataclasses import dataclass, replace
from typing import Dict, FrozenSet, List, Protocol, Sequence, Set, Tuple

from ..errors import ConfigurationError
from ..logger import get_logger
from ..models.annotation import Annotation
from ..models.logic import Atom, AtomSignature, Clause, Constant, EvidenceAtom, Literal, Term, TriState, Variable
from ..models.modes import KnowledgeBase, ModeDeclaration, ModeDeclarations
from ..models.node import Node

logger = get_logger(__name__)


class NodeSource(Protocol):
    """节点来源协议：带标签节点必须排在未标注节点之前。"""

    def partition(
        self,
        kb: KnowledgeBase,
        annotation: Annotation,
        modes: ModeDeclarations,
        signature: AtomSignature,
    ) -> List[Node]: ...


def _domain_constants(
    atom: EvidenceAtom, kb: KnowledgeBase, modes: ModeDeclarations
) -> Dict[str, Set[Constant]]:
    """按论域收集原子的常量；模式声明为忽略的位置不参与。"""

    mode = modes.get(atom.signature)
    result: Dict[str, Set[Constant]] = {}
    for position, constant in enumerate(atom.constants):
        if mode is not None and mode.is_ignored(position):
            continue
        result.setdefault(kb.domain_of(atom.signature, position), set()).add(constant)
    return result


def _related(candidate: Dict[str, Set[Constant]], query: Dict[str, Set[Constant]]) -> bool:
    """证据与目标至少共享一个论域，且共享论域上的常量都属于目标。"""

    shared = [domain for domain in candidate if domain in query]
    return bool(shared) and all(candidate[domain] <= query[domain] for domain in shared)


def as_pattern(
    query: EvidenceAtom,
    evidence: Sequence[EvidenceAtom],
    kb: KnowledgeBase,
    modes: ModeDeclarations,
) -> Tuple[Atom, Clause]:
    """把地原子提升为模式：常量依首次出现顺序映射为 x0, x1, ...；
    模式声明为常量的位置保持常量。返回 (头原子, 体子句)。"""

    variables: Dict[Tuple[Constant, str], Variable] = {}

    def lift(atom: EvidenceAtom) -> Atom:
        mode = modes.get(atom.signature)
        terms: List[Term] = []
        for position, constant in enumerate(atom.constants):
            if mode is not None and mode.is_constant(position):
                terms.append(constant)
                continue
            domain = kb.domain_of(atom.signature, position)
            key = (constant, domain)
            if key not in variables:
                variables[key] = Variable(f"x{len(variables)}", domain)
            terms.append(variables[key])
        return Atom(atom.symbol, tuple(terms))

    head = lift(query)
    # 证据为真，子句形式中以负文字出现
    body = Clause.of(Literal(lift(e), False) for e in evidence)
    return head, body


@dataclass(frozen=True)
class SimpleGrounder:
    # 是否把合一意义下相同的未标注节点合并为一个节点
    cluster_unlabeled: bool = False

    def partition(
        self,
        kb: KnowledgeBase,
        annotation: Annotation,
        modes: ModeDeclarations,
        signature: AtomSignature,
    ) -> List[Node]:
        if annotation.signature != signature:
            raise ConfigurationError(f"Query signature '{signature}' does not exist in the given annotation.")

        start = time.perf_counter()
        query_mode = modes.get(signature, ModeDeclaration(()))
        evidence_atoms = [
            (atom, _domain_constants(atom, kb, modes))
            for atom in kb.evidence
            if atom.state == TriState.true and atom.signature != signature
        ]

        query_atoms = list(annotation)
        labeled_atoms = [q for q in query_atoms if q.state != TriState.unknown]
        unlabeled_atoms = [q for q in query_atoms if q.state == TriState.unknown]
        if not labeled_atoms:
            logger.warning("There are no labeled query atoms in the annotation.")

        def build(group: List[EvidenceAtom]) -> Node:
            query = group[0]
            query_domains = _domain_constants(query, kb, modes)
            evidence = tuple(atom for atom, domains in evidence_atoms if _related(domains, query_domains))
            evidence = tuple(sorted(evidence, key=EvidenceAtom.to_text))
            head, body = as_pattern(query, evidence, kb, modes)
            clause = None
            if query.state != TriState.unknown:
                clause = Clause(body.literals | {Literal(head, query.state != TriState.false)})
            return Node(
                query,
                evidence,
                clause,
                body,
                head,
                query_mode.ordering_index,
                query_mode.partition_indices,
                tuple(group[1:]),
            )

        labeled = [build(group) for group in group_by_constants(labeled_atoms)]
        unlabeled = [build(group) for group in group_by_constants(unlabeled_atoms)]
        if self.cluster_unlabeled:
            unlabeled = cluster_identical(unlabeled)

        logger.info(
            "Grounded %d labeled and %d unlabeled nodes in %.3fs",
            len(labeled),
            len(unlabeled),
            time.perf_counter() - start,
        )
        return labeled + unlabeled


def group_by_constants(atoms: Sequence[EvidenceAtom]) -> List[List[EvidenceAtom]]:
    """常量集合相同的目标原子（如 Q(A,B) 与 Q(B,A)）归为一组，保持首次出现顺序。"""

    groups: Dict[FrozenSet[Constant], List[EvidenceAtom]] = {}
    for atom in atoms:
        groups.setdefault(frozenset(atom.constants), []).append(atom)
    return list(groups.values())


def cluster_identical(nodes: Sequence[Node]) -> List[Node]:
    """合一意义下相同的节点只保留第一个，其余目标原子记为 similar_atoms。"""

    buckets: Dict[Tuple, List[List[Node]]] = {}
    groups: List[List[Node]] = []
    for node in nodes:
        pattern = node.pattern
        bucket = buckets.setdefault(pattern.pattern_key(), [])
        group = next((g for g in bucket if g[0].pattern.is_variant(pattern)), None)
        if group is None:
            group = [node]
            bucket.append(group)
            groups.append(group)
        else:
            group.append(node)
    return [
        replace(
            group[0],
            similar_atoms=group[0].similar_atoms + tuple(a for n in group[1:] for a in (n.query,) + n.similar_atoms),
        )
        if len(group) > 1
        else group[0]
        for group in groups
    ]
