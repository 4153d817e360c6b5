"""全局配置与默认参数。"""

from dataclasses import dataclass

from .errors import ConfigurationError


@dataclass
class SupervisionConfig:
    """系统可调参数集合。

    注意：这里的数值只是初始默认值，真实项目中应由实验调整覆盖。
    """

    # 监督图类型：splice、nn、ext_nn 或 streaming
    graph_kind: str = "splice"
    # 连接策略：full、knn、knn_labeled、knn_temporal、enn、enn_labeled、enn_temporal、ann、ann_labeled、ann_temporal
    connector_kind: str = "knn_labeled"
    # kNN 保留的互异边权个数
    k: int = 2
    # eNN 阈值，低于该值的边被删除
    epsilon: float = 0.75
    # 求解算法：lp、lgc 或 hfc
    solver_kind: str = "hfc"
    # 迭代求解的最大步数，小于 1 时使用闭式解
    iterations: int = 50
    # 标签扩散的钳制系数
    alpha: float = 0.5
    # 流式图保留的未标注节点个数
    memory: int = 8
    # 参与连接的节点最少证据个数
    min_node_size: int = 1
    # 缓存模式最少出现次数
    min_node_occurrence: int = 1
    # 是否合并合一意义下相同的未标注节点
    enable_clusters: bool = False
    # 是否调用外部特征选择
    enable_selection: bool = False
    # 特征选择前聚簇时保留的密度比例
    max_density: float = 1.0
    # 是否对新的带标签节点做子节点扩充
    augment_labeled: bool = False
    # 缓存收集时剔除被相反模式压倒的模式
    prune_contradictions: bool = False
    # 剔除时是否要求 Hoeffding 界成立
    use_hoeffding_bound: bool = False
    # 集合距离匹配器：hungarian 或 hausdorff
    matcher: str = "hungarian"
    # 边权计算线程数
    workers: int = 1

    def validate(self) -> "SupervisionConfig":
        if self.k < 1:
            raise ConfigurationError(f"k must be positive, got {self.k}")
        if self.memory < 1:
            raise ConfigurationError(f"memory must be positive, got {self.memory}")
        if not 0.0 <= self.alpha <= 1.0:
            raise ConfigurationError(f"alpha must be in [0, 1], got {self.alpha}")
        if self.min_node_size < 1:
            raise ConfigurationError(f"min_node_size must be positive, got {self.min_node_size}")
        if self.workers < 1:
            raise ConfigurationError(f"workers must be positive, got {self.workers}")
        if self.graph_kind == "streaming" and not self.connector_kind.endswith("_temporal"):
            raise ConfigurationError("streaming graphs require a temporal connector")
        return self
