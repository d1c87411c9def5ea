"""
仿真异常定义

异常分类:
- ConfigurationError: 配置完整性错误（运行前校验失败，不调度任何事件）
- SchedulingError: 调度不变量被破坏（NaN时间、时间倒流、步数超限）
- CalendarError: 日历推进失败（无工作时间、迭代超限）
- OrderFormatError: 单个订单格式错误（记录日志后跳过）
- OperationalError: 运行状态错误（无有效班次）
"""

from typing import List, Optional


class SimulationError(Exception):
    """仿真异常基类"""


class ConfigurationError(SimulationError):
    """
    配置完整性错误

    Attributes:
        errors: 展示给用户的错误列表（已截断）
        omitted: 被截断的错误数量
    """

    def __init__(self, message: str, errors: Optional[List[str]] = None, omitted: int = 0):
        super().__init__(message)
        self.errors = errors or []
        self.omitted = omitted


class SchedulingError(SimulationError):
    """调度不变量错误（致命）"""


class CalendarError(SimulationError):
    """日历推进错误（致命）"""


class OrderFormatError(SimulationError):
    """订单BOM字符串无法解析"""


class OperationalError(SimulationError):
    """运行状态错误（如整个日历没有有效班次）"""
