"""
回放事件收集器
收集仿真过程中的时间线记录，供外部回放/甘特图查看器重建过程

功能:
- 记录工位状态、缓冲区快照、搬运、工人行走、资源占用
- 按类型/节点/时间窗口查询
- 汇总计数
"""

from collections import Counter
from typing import Any, Dict, Iterable, List, Optional

from prodsim.models.enums import ReplayEventType, StationStatus
from prodsim.models.replay_model import ReplayEvent

# 缓冲区快照中保留的最大零件数
BUFFER_CONTENT_LIMIT = 50


class ReplayCollector:
    """
    回放事件收集器

    只追加，不修改已记录的事件
    """

    def __init__(self):
        self.events: List[ReplayEvent] = []

    def add_event(self, event: ReplayEvent):
        self.events.append(event)

    # ============ 记录 ============

    def record_station_state(
        self,
        time: float,
        station_id: str,
        status: StationStatus,
        part=None,
        end_time: Optional[float] = None,
        **meta
    ):
        """
        记录工位状态切换

        Args:
            time: 切换时刻
            station_id: 工位ID
            status: 新状态
            part: 相关零件（可选）
            end_time: 预计结束时刻（可选）
        """
        self.add_event(ReplayEvent(
            event_type=ReplayEventType.STATION_STATE,
            time=time,
            end_time=end_time,
            node_id=station_id,
            status=status.value,
            part_id=part.id if part is not None else None,
            order_id=part.order_id if part is not None else None,
            part_code=part.product_code if part is not None else None,
            meta=meta,
        ))

    def record_buffer_state(self, time: float, buffer_id: str, parts: Iterable):
        """
        记录缓冲区快照

        Args:
            parts: 缓冲区内的零件（按队列顺序）
        """
        parts = list(parts)
        self.add_event(ReplayEvent(
            event_type=ReplayEventType.BUFFER_STATE,
            time=time,
            node_id=buffer_id,
            count=len(parts),
            content=[
                {"code": p.product_code, "order_id": p.order_id}
                for p in parts[:BUFFER_CONTENT_LIMIT]
            ],
        ))

    def record_transport(self, part, from_node: str, to_node: str, start: float, end: float):
        """记录物料搬运区间"""
        self.add_event(ReplayEvent(
            event_type=ReplayEventType.TRANSPORT,
            time=start,
            end_time=end,
            node_id=from_node,
            target_id=to_node,
            part_id=part.id,
            order_id=part.order_id,
            part_code=part.product_code,
            meta={"is_assembled": bool(part.attached_children)},
        ))

    def record_worker_travel(self, pool_id: str, station_id: str, start: float, end: float):
        """记录工人行走区间"""
        self.add_event(ReplayEvent(
            event_type=ReplayEventType.WORKER_TRAVEL,
            time=start,
            end_time=end,
            node_id=pool_id,
            target_id=station_id,
        ))

    def record_resource_usage(
        self,
        pool_id: str,
        usage: str,
        part_id: str,
        start: float,
        end: float,
        **meta
    ):
        """记录资源占用区间（usage: PROCESSING/TRANSPORT）"""
        self.add_event(ReplayEvent(
            event_type=ReplayEventType.RESOURCE_USAGE,
            time=start,
            end_time=end,
            node_id=pool_id,
            part_id=part_id,
            status=usage,
            meta=meta,
        ))

    # ============ 查询 ============

    def get_events_by_type(self, event_type: ReplayEventType) -> List[ReplayEvent]:
        return [e for e in self.events if e.event_type == event_type]

    def get_events_by_node(self, node_id: str) -> List[ReplayEvent]:
        """获取某节点（工位/缓冲区/资源池）相关的事件，含作为目的节点的事件"""
        return [e for e in self.events if e.node_id == node_id or e.target_id == node_id]

    def get_events_in_range(self, start: float, end: float) -> List[ReplayEvent]:
        """获取与 [start, end) 有交集的事件"""
        return [e for e in self.events if e.overlaps(start, end)]

    def get_statistics(self) -> Dict[str, Any]:
        """获取统计摘要"""
        by_type = Counter(e.event_type.value for e in self.events)
        stops = [
            e for e in self.events
            if e.event_type == ReplayEventType.STATION_STATE and e.status == StationStatus.STOP.value
        ]
        return {
            "total_events": len(self.events),
            "by_type": dict(by_type),
            "breakdown_events": len(stops),
            "transport_time_total": sum(
                e.duration for e in self.events if e.event_type == ReplayEventType.TRANSPORT
            ),
        }

    def clear(self):
        self.events.clear()


def filter_replay_events(
    events: List[ReplayEvent],
    event_type: Optional[ReplayEventType] = None,
    node_id: Optional[str] = None,
    start: Optional[float] = None,
    end: Optional[float] = None
) -> List[ReplayEvent]:
    """
    组合筛选回放事件（结果查询接口使用）
    """
    result = events
    if event_type is not None:
        result = [e for e in result if e.event_type == event_type]
    if node_id is not None:
        result = [e for e in result if e.node_id == node_id or e.target_id == node_id]
    if start is not None or end is not None:
        lower = start if start is not None else float("-inf")
        upper = end if end is not None else float("inf")
        result = [e for e in result if e.overlaps(lower, upper)]
    return result
