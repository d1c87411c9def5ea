"""
回放事件模型
定义外部回放/甘特图查看器使用的时间线记录

功能:
- 工位状态区间（RUN/IDLE/WAITING_FOR_WORKER/STOP/BLOCKED）
- 缓冲区占用快照
- 搬运、工人行走、资源占用区间
- 时间格式转换（小时 -> Day-Hour）
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from prodsim.models.enums import ReplayEventType


@dataclass
class ReplayEvent:
    """
    回放事件

    点事件（工位状态切换、缓冲区快照）只有 time；区间事件另有 end_time

    Attributes:
        event_type: 回放事件类型
        time: 发生/开始时间（小时）
        end_time: 结束时间（小时）
        node_id: 工位/缓冲区/资源池ID
        target_id: 搬运或行走的目的节点
        status: 工位状态
        part_id: 零件ID
        order_id: 订单号
        part_code: 产品代码
        count: 缓冲区数量
        content: 缓冲区内容（前50个）
        meta: 附加信息
    """

    event_type: ReplayEventType
    time: float
    end_time: Optional[float] = None
    node_id: Optional[str] = None
    target_id: Optional[str] = None
    status: Optional[str] = None
    part_id: Optional[str] = None
    order_id: Optional[str] = None
    part_code: Optional[str] = None
    count: Optional[int] = None
    content: List[Dict[str, str]] = field(default_factory=list)
    meta: Dict[str, Any] = field(default_factory=dict)

    @property
    def duration(self) -> float:
        """区间时长（小时），点事件为0"""
        if self.end_time is None:
            return 0.0
        return self.end_time - self.time

    def overlaps(self, start: float, end: float) -> bool:
        """是否与 [start, end) 有交集"""
        finish = self.end_time if self.end_time is not None else self.time
        return finish >= start and self.time < end

    def to_dict(self) -> dict:
        """转换为字典（省略空字段）"""
        data: Dict[str, Any] = {"type": self.event_type.value, "time": self.time}
        optional = {
            "end_time": self.end_time,
            "node_id": self.node_id,
            "target_id": self.target_id,
            "status": self.status,
            "part_id": self.part_id,
            "order_id": self.order_id,
            "part_code": self.part_code,
            "count": self.count,
        }
        for key, value in optional.items():
            if value is not None:
                data[key] = value
        if self.end_time is not None:
            data["duration"] = self.duration
        if self.event_type == ReplayEventType.BUFFER_STATE:
            data["content"] = list(self.content)
        if self.meta:
            data["meta"] = dict(self.meta)
        return data
