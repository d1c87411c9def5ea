"""
仿真运行状态
单次运行的全部可变数据，由 run() 创建并按引用传给每个事件处理器

功能:
- 仿真时钟与事件队列
- 零件仓库（按稳定ID索引）
- 工位/缓冲区占用表、资源池
- 资源预留与挂起的搬运
- 统计累加器、日志、回放收集器
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Set, Tuple

import numpy as np

from prodsim.core.event_collector import ReplayCollector
from prodsim.core.event_queue import EventQueue
from prodsim.core.node_queue import NodeQueue
from prodsim.core.resource_pool import ResourcePool
from prodsim.models.part_model import Part
from prodsim.models.result_model import WipSample

logger = logging.getLogger(__name__)


@dataclass
class Breakdown:
    """故障记录"""
    start_time: float
    duration: float


@dataclass
class StationState:
    """
    工位运行时状态

    Attributes:
        queue: 等待加工的零件
        busy_slots: 占用中的加工位（<= capacity）
        incoming: 正在搬运过来的零件数
        total_busy_time: 累计加工时间
        total_starved_time: 累计饥饿时间（空闲能力 × 时长）
        max_queue: 最大排队数
        breakdowns: 故障记录
    """
    capacity: int
    queue: NodeQueue = field(default_factory=NodeQueue)
    busy_slots: int = 0
    incoming: int = 0
    total_busy_time: float = 0.0
    total_starved_time: float = 0.0
    max_queue: int = 0
    operations_completed: int = 0
    breakdowns: List[Breakdown] = field(default_factory=list)

    @property
    def idle_slots(self) -> int:
        return self.capacity - self.busy_slots

    def note_queue_length(self):
        self.max_queue = max(self.max_queue, len(self.queue))


@dataclass
class BufferState:
    """缓冲区运行时状态"""
    queue: NodeQueue = field(default_factory=NodeQueue)
    max_queue: int = 0

    def note_queue_length(self):
        self.max_queue = max(self.max_queue, len(self.queue))


@dataclass
class PendingTransport:
    """等待工具的搬运"""
    from_node: str
    to_node: str
    flow_id: str


@dataclass
class BottleneckSnapshot:
    time: float
    station_id: str
    load: float


@dataclass
class SimulationState:
    """
    单次运行的可变状态

    reserved_grants 记录资源池在释放时已授予、但零件尚未消费的资源，
    零件恢复执行时直接消费预留，不会再次请求
    """
    rng: np.random.Generator
    queue: EventQueue = field(default_factory=EventQueue)
    now: float = 0.0
    steps: int = 0

    parts: Dict[str, Part] = field(default_factory=dict)
    part_counter: int = 0
    stations: Dict[str, StationState] = field(default_factory=dict)
    buffers: Dict[str, BufferState] = field(default_factory=dict)
    worker_pools: Dict[str, ResourcePool] = field(default_factory=dict)
    tool_pools: Dict[str, ResourcePool] = field(default_factory=dict)

    reserved_grants: Set[Tuple[str, str]] = field(default_factory=set)
    pending_transports: Dict[str, PendingTransport] = field(default_factory=dict)
    resume_times: Set[float] = field(default_factory=set)

    order_sections: Dict[str, str] = field(default_factory=dict)
    order_sizes: Dict[str, str] = field(default_factory=dict)
    produced: int = 0
    scrapped: int = 0
    cycle_times: List[float] = field(default_factory=list)
    wip_history: List[WipSample] = field(default_factory=list)
    bottleneck_snapshots: List[BottleneckSnapshot] = field(default_factory=list)
    next_wip_sample: float = 0.0

    collector: ReplayCollector = field(default_factory=ReplayCollector)
    log: List[str] = field(default_factory=list)

    def log_message(self, message: str, level: int = logging.DEBUG):
        """写入运行日志并转发到模块日志"""
        self.log.append(message)
        logger.log(level, message)

    def next_part_id(self) -> str:
        self.part_counter += 1
        return f"part_{self.part_counter}"
