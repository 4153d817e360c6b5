"""带标签节点模式的频次缓存。"""

from __future__ import annotations

import math
from typing import Dict, Iterable, List, Tuple

from ..errors import CacheMissError, PatternError
from ..logger import get_logger
from ..models.logic import AtomSignature, Clause
from ..models.node import Node

logger = get_logger(__name__)

# 冲突剪枝时 Hoeffding 界使用的置信参数
HOEFFDING_DELTA = 1e-4


def hoeffding_bound(x: float, y: float, n: int, delta: float = HOEFFDING_DELTA) -> bool:
    """两个频率之差是否显著超过 Hoeffding 界。"""

    if n <= 0:
        return False
    return abs(x - y) > math.sqrt(math.log(2.0 / delta) / (2.0 * n))


class _Entry:
    __slots__ = ("node", "count")

    def __init__(self, node: Node, count: int) -> None:
        self.node = node
        self.count = count


class NodeCache:
    """模式 -> 出现次数。

    模式即带标签节点的子句（变量重命名意义下判等）。缓存只增不减；
    合并返回新缓存，旧缓存保持不变。
    """

    def __init__(
        self,
        signature: AtomSignature,
        *,
        prune_contradictions: bool = False,
        use_hoeffding_bound: bool = False,
        has_changed: bool = False,
        _buckets: Dict[Tuple, List[_Entry]] | None = None,
    ) -> None:
        self.signature = signature
        self.prune_contradictions = prune_contradictions
        self.use_hoeffding_bound = use_hoeffding_bound
        # 自上次特征选择以来带标签集合是否变化
        self.has_changed = has_changed
        self._buckets: Dict[Tuple, List[_Entry]] = _buckets or {}

    def _copy(self, has_changed: bool) -> "NodeCache":
        buckets = {
            key: [_Entry(entry.node, entry.count) for entry in entries]
            for key, entries in self._buckets.items()
        }
        return NodeCache(
            self.signature,
            prune_contradictions=self.prune_contradictions,
            use_hoeffding_bound=self.use_hoeffding_bound,
            has_changed=has_changed,
            _buckets=buckets,
        )

    @staticmethod
    def _pattern(node: Node) -> Clause:
        if node.clause is None:
            raise PatternError(f"cannot construct a pattern for {node.query.to_text()}")
        return node.clause

    def _find(self, pattern: Clause) -> _Entry | None:
        for entry in self._buckets.get(pattern.pattern_key(), ()):
            if entry.node.clause is not None and entry.node.clause.is_variant(pattern):
                return entry
        return None

    # --- 查询 ---

    def get(self, node: Node) -> int | None:
        if node.clause is None:
            return None
        entry = self._find(node.clause)
        return None if entry is None else entry.count

    def get_or_else(self, node: Node, default: int) -> int:
        count = self.get(node)
        return default if count is None else count

    def count(self, node: Node) -> int:
        """求解阶段使用：节点必须已在缓存中。"""

        count = self.get(node)
        if count is None:
            raise CacheMissError(f"pattern '{node.to_text()}' does not exist in the cache")
        return count

    def __contains__(self, node: Node) -> bool:
        return node.is_labeled and self.get(node) is not None

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._buckets.values())

    def entries(self) -> List[Tuple[Node, int]]:
        return [(entry.node, entry.count) for entries in self._buckets.values() for entry in entries]

    @property
    def total(self) -> int:
        return sum(count for _, count in self.entries())

    @property
    def number_of_positive(self) -> int:
        return sum(1 for node, _ in self.entries() if node.is_positive)

    @property
    def number_of_negative(self) -> int:
        return sum(1 for node, _ in self.entries() if node.is_negative)

    # --- 更新 ---

    def merge(self, nodes: Iterable[Node]) -> "NodeCache":
        """合并新的带标签节点；模式相同的节点累加计数。"""

        nodes = [node for node in nodes if node.is_labeled and not node.is_empty]
        if not nodes:
            return self._copy(self.has_changed)
        updated = self._copy(True)
        for node in nodes:
            pattern = self._pattern(node)
            entry = updated._find(pattern)
            if entry is None:
                updated._buckets.setdefault(pattern.pattern_key(), []).append(_Entry(node, 1))
            else:
                entry.count += 1
        logger.debug("Cache merged %d nodes: %d patterns, %d observations", len(nodes), len(updated), updated.total)
        return updated

    def __add__(self, nodes: Iterable[Node]) -> "NodeCache":
        return self.merge(nodes)

    def mark_clean(self) -> "NodeCache":
        return self._copy(False)

    def collect_nodes(self) -> List[Node]:
        """每个模式返回一个代表节点。"""

        result: List[Node] = []
        for node, count in self.entries():
            if self.prune_contradictions and self._contradicted(node, count):
                logger.debug("Remove pattern %s", node.to_text())
                continue
            result.append(node)
        return result

    def _contradicted(self, node: Node, count: int) -> bool:
        opposite = self._find(self._pattern(node.opposite))
        if opposite is None:
            return False
        n = count + opposite.count
        frequency = count / n
        opposite_frequency = opposite.count / n
        if self.use_hoeffding_bound and not hoeffding_bound(frequency, opposite_frequency, n):
            return False
        return frequency < opposite_frequency

    def to_text(self) -> str:
        return "\n".join(f"{node.clause.to_text()} -> {count}" for node, count in self.entries())
