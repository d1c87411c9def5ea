"""
零件模型
仿真中流动的最小工作单元

功能:
- 身份与订单归属
- 工艺路线游标（只增不减）
- BOM需求与装配关系（子件通过 parent_id 外键归属父件）
- 状态机与时间桶累计

设计要点:
- 每次状态迁移把经过时间计入迁移前状态对应的时间桶
- 加工/搬运/工人行走期间落在非工作时间的部分计入等待，四个时间桶之和恒等于经过时间
- 装配后的工艺路线追加到原路线末尾，游标不回退
"""

from dataclasses import dataclass, field
from typing import List, Optional

from prodsim.models.config_model import Operation
from prodsim.models.enums import (
    PartKind,
    PartState,
    STATE_BUCKET,
    CALENDAR_BOUND_STATES,
)


@dataclass
class BomEntry:
    """
    BOM条目

    Attributes:
        kind: 父件/子件
        code: 产品代码
        size: 尺寸
        section: 所属段序号（从1开始）
        children: 父件所需子件
    """
    kind: PartKind
    code: str
    size: str
    section: int = 0
    children: List["BomEntry"] = field(default_factory=list)


@dataclass
class TimeBuckets:
    """时间桶（小时）"""
    processing: float = 0.0
    transport: float = 0.0
    wait: float = 0.0
    blocked: float = 0.0

    @property
    def total(self) -> float:
        return self.processing + self.transport + self.wait + self.blocked

    def add(self, bucket: str, hours: float):
        setattr(self, bucket, getattr(self, bucket) + hours)

    def to_dict(self) -> dict:
        return {
            "processing": self.processing,
            "transport": self.transport,
            "wait": self.wait,
            "blocked": self.blocked,
        }


@dataclass
class Part:
    """
    零件

    Attributes:
        id: 零件ID（part_N）
        order_id: 订单号
        kind: 父件/子件
        product_code: 产品代码
        size_code: 尺寸
        routing: 工艺路线
        routing_cursor: 下一道工序的下标
        bom: 父件所需子件
        attached_children: 已装配子件ID
        parent_id: 被装配到的父件ID
        state: 当前状态
        location: 当前所在节点ID
        created_at: 创建时间（小时）
        finished_at: 完成/报废时间
        due_date: 交期（小时）
        material_cost: 材料成本
        assembled: 父件是否已完成装配配套
    """
    id: str
    order_id: str
    kind: PartKind
    product_code: str
    size_code: str
    routing: List[Operation] = field(default_factory=list)
    routing_cursor: int = 0
    bom: List[BomEntry] = field(default_factory=list)
    attached_children: List[str] = field(default_factory=list)
    parent_id: Optional[str] = None
    state: PartState = PartState.CREATED
    location: Optional[str] = None
    created_at: float = 0.0
    finished_at: Optional[float] = None
    due_date: Optional[float] = None
    material_cost: float = 0.0
    buckets: TimeBuckets = field(default_factory=TimeBuckets)
    last_change_time: Optional[float] = None
    visited_stations: List[str] = field(default_factory=list)
    assembled: bool = False

    def __post_init__(self):
        if self.last_change_time is None:
            self.last_change_time = self.created_at

    def update_state(self, next_state: PartState, now: float, calendar=None):
        """
        状态迁移

        Args:
            next_state: 目标状态
            now: 当前仿真时间
            calendar: 班次日历（提供时，日历约束状态中的非工作时间计入等待）
        """
        elapsed = max(0.0, now - self.last_change_time)
        bucket = STATE_BUCKET.get(self.state, "wait")
        if elapsed > 0:
            if calendar is not None and self.state in CALENDAR_BOUND_STATES:
                idle = min(elapsed, calendar.non_working_time(self.last_change_time, now))
                self.buckets.add(bucket, elapsed - idle)
                self.buckets.add("wait", idle)
            else:
                self.buckets.add(bucket, elapsed)

        self.state = next_state
        self.last_change_time = now
        if next_state in (PartState.FINISHED, PartState.SCRAPPED):
            self.finished_at = now

    def next_operation(self) -> Optional[Operation]:
        """获取下一道工序，路线已完成返回None"""
        if self.routing_cursor < len(self.routing):
            return self.routing[self.routing_cursor]
        return None

    def advance_routing(self):
        """工序完成，游标前进"""
        if self.routing_cursor < len(self.routing):
            self.routing_cursor += 1

    def extend_routing(self, operations: List[Operation]):
        """追加装配工序"""
        self.routing.extend(operations)

    @property
    def routing_exhausted(self) -> bool:
        return self.routing_cursor >= len(self.routing)

    @property
    def is_parent(self) -> bool:
        return self.kind == PartKind.PARENT

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    @property
    def lead_time(self) -> Optional[float]:
        """交付周期（完成时间 - 创建时间）"""
        if self.finished_at is None:
            return None
        return self.finished_at - self.created_at

    @property
    def type_label(self) -> str:
        """显示用的产品标签"""
        return f"{self.product_code}/{self.size_code}"

    def to_dict(self) -> dict:
        """转换为字典"""
        return {
            "id": self.id,
            "order_id": self.order_id,
            "kind": self.kind.value,
            "product_code": self.product_code,
            "size_code": self.size_code,
            "state": self.state.value,
            "location": self.location,
            "routing_cursor": self.routing_cursor,
            "routing_length": len(self.routing),
            "attached_children": list(self.attached_children),
            "parent_id": self.parent_id,
            "assembled": self.assembled,
            "created_at": self.created_at,
            "finished_at": self.finished_at,
            "due_date": self.due_date,
            "material_cost": self.material_cost,
            "buckets": self.buckets.to_dict(),
        }
