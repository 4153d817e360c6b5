"""目标谓词的标注集合（封闭世界）。"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, Mapping, Tuple

from .logic import AtomSignature, EvidenceAtom, TriState

AtomKey = Tuple[str, Tuple[str, ...]]


@dataclass(frozen=True)
class Annotation:
    """不可变标注：键为目标地原子，值为真值。

    未出现的原子按封闭世界假设视为 false；unknown 条目表示待补全的目标原子。
    """

    signature: AtomSignature
    states: Mapping[AtomKey, TriState] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "states", MappingProxyType(dict(self.states)))

    @classmethod
    def of(cls, signature: AtomSignature, atoms: Iterable[EvidenceAtom]) -> "Annotation":
        return cls(signature).with_atoms(atoms)

    def with_atoms(self, atoms: Iterable[EvidenceAtom]) -> "Annotation":
        """返回追加（覆盖）若干原子后的新标注。"""

        updated: Dict[AtomKey, TriState] = dict(self.states)
        for atom in atoms:
            updated[atom.key] = atom.state
        return Annotation(self.signature, updated)

    def state_of(self, atom: EvidenceAtom) -> TriState:
        return self.states.get(atom.key, TriState.false)

    def __contains__(self, atom: EvidenceAtom) -> bool:
        return atom.key in self.states

    def __len__(self) -> int:
        return len(self.states)

    def __iter__(self) -> Iterator[EvidenceAtom]:
        for (symbol, constants), state in self.states.items():
            yield EvidenceAtom.of(symbol, *constants, state=state)

    @property
    def unknown_atoms(self) -> Tuple[EvidenceAtom, ...]:
        return tuple(atom for atom in self if atom.state == TriState.unknown)

    @property
    def is_complete(self) -> bool:
        return not self.unknown_atoms
