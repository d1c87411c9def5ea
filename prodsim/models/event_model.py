"""
仿真事件模型
事件载荷为封闭的标签联合，每种事件只携带其处理器需要的字段

事件:
- OrderArrival: 订单到达
- PartArrivesAtNode: 零件到达节点（缓冲区/工位）
- WorkerArrivesAtStation: 工人到达工位
- OperationComplete: 工序完成
- TransportComplete: 工具搬运完成
- ShiftResume: 班次恢复（非工作时间后重新驱动产线）
"""

from dataclasses import dataclass
from typing import Optional, Union

from prodsim.models.enums import EventKind


@dataclass(frozen=True)
class OrderTicket:
    """订单到达时携带的信息"""
    order_id: str
    sections: str
    size: str
    due_date: Optional[float] = None


@dataclass(frozen=True)
class OrderArrival:
    order: OrderTicket


@dataclass(frozen=True)
class PartArrivesAtNode:
    part_id: str
    node_id: str


@dataclass(frozen=True)
class WorkerArrivesAtStation:
    part_id: str
    station_id: str
    pool_id: str
    operators: int
    nominal: float


@dataclass(frozen=True)
class OperationComplete:
    part_id: str
    station_id: str
    pool_id: Optional[str]
    operators: int
    duration: float
    repair: float
    started_at: float


@dataclass(frozen=True)
class TransportComplete:
    part_id: str
    from_node: str
    to_node: str
    pool_id: str
    tools: int
    started_at: float


@dataclass(frozen=True)
class ShiftResume:
    pass


EventPayload = Union[
    OrderArrival,
    PartArrivesAtNode,
    WorkerArrivesAtStation,
    OperationComplete,
    TransportComplete,
    ShiftResume,
]

PAYLOAD_KINDS = {
    OrderArrival: EventKind.ORDER_ARRIVAL,
    PartArrivesAtNode: EventKind.PART_ARRIVES_AT_NODE,
    WorkerArrivesAtStation: EventKind.WORKER_ARRIVES_AT_STATION,
    OperationComplete: EventKind.OPERATION_COMPLETE,
    TransportComplete: EventKind.TRANSPORT_COMPLETE,
    ShiftResume: EventKind.SHIFT_RESUME,
}


@dataclass(frozen=True)
class Event:
    """
    仿真事件

    按 (time, seq) 排序；seq 在入队时单调递增
    """
    time: float
    seq: int
    payload: EventPayload

    @property
    def kind(self) -> EventKind:
        return PAYLOAD_KINDS[type(self.payload)]
