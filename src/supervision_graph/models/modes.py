"""模式声明与知识库批次。"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Tuple

from .logic import AtomSignature, Clause, EvidenceAtom


class PlaceMarker(str, Enum):
    """参数位置的角色。

    input: 输入变量
    output: 输出变量
    constant: 保持为常量（不提升为变量）
    ignore: 不参与证据收集
    """

    input = "+"
    output = "-"
    constant = "#"
    ignore = "."


@dataclass(frozen=True)
class ModeDeclaration:
    placemarkers: Tuple[PlaceMarker, ...]
    # 作为时序键的参数位置，-1 表示无
    ordering_index: int = -1
    # 划分键的参数位置，空表示全部参数
    partition_indices: Tuple[int, ...] = ()

    @classmethod
    def parse(cls, markers: str, ordering_index: int = -1, partition_indices: Tuple[int, ...] = ()) -> "ModeDeclaration":
        """从形如 "+,#,-" 的串解析。"""

        parsed = tuple(PlaceMarker(token.strip()) for token in markers.split(",") if token.strip())
        return cls(parsed, ordering_index, partition_indices)

    def is_constant(self, position: int) -> bool:
        return position < len(self.placemarkers) and self.placemarkers[position] == PlaceMarker.constant

    def is_ignored(self, position: int) -> bool:
        return position < len(self.placemarkers) and self.placemarkers[position] == PlaceMarker.ignore


ModeDeclarations = Mapping[AtomSignature, ModeDeclaration]


@dataclass(frozen=True)
class KnowledgeBase:
    """一个批次的证据与背景知识。"""

    # 各谓词的参数论域
    schema: Mapping[AtomSignature, Tuple[str, ...]]
    evidence: Tuple[EvidenceAtom, ...] = ()
    # 背景知识子句，用于剔除已被蕴含的带标签节点
    clauses: Tuple[Clause, ...] = ()

    def domain_of(self, signature: AtomSignature, position: int) -> str:
        argument_domains = self.schema.get(signature, ())
        if position < len(argument_domains):
            return argument_domains[position]
        return f"{signature.symbol}_{position}"
