"""异常类型。"""


class SupervisionError(Exception):
    """标注补全相关错误的基类。"""


class ConfigurationError(SupervisionError):
    """配置不合法：目标谓词缺失于标注、参数越界、流式图未使用时序连接器等。"""


class CacheMissError(SupervisionError):
    """近邻投票时，已连接的带标签节点不在缓存中（内部一致性被破坏）。"""


class PatternError(SupervisionError):
    """节点缺少子句形式，却被要求参与缓存或翻转标签。"""
