"""
数据模型包
包含系统中使用的所有数据模型

模块说明:
- enums.py: 枚举定义（PartState, StationKind等）
- config_model.py: 输入模型（生产线/产品库/订单/运行参数）
- part_model.py: 零件模型
- event_model.py: 仿真事件模型
- replay_model.py: 回放事件模型
- result_model.py: 仿真报告模型
"""

from prodsim.models.enums import (
    PartState,
    PartKind,
    ProductFamily,
    StationKind,
    EventKind,
    ReplayEventType,
    StationStatus,
    SimulationStatus,
    ErrorKind,
    OrderStatus,
    ReleasePolicy,
    MessageType,
)
from prodsim.models.config_model import (
    Operation,
    CatalogOperation,
    ProductCatalog,
    StationConfig,
    BufferConfig,
    FlowConfig,
    WorkerFlowConfig,
    PoolConfig,
    ToolPoolConfig,
    LineConfig,
    ShiftConfig,
    TimeRule,
    RunSettings,
    OrderRow,
    routing_key,
    product_type_id,
)
from prodsim.models.part_model import Part, BomEntry, TimeBuckets
from prodsim.models.event_model import (
    Event,
    OrderTicket,
    OrderArrival,
    PartArrivesAtNode,
    WorkerArrivesAtStation,
    OperationComplete,
    TransportComplete,
    ShiftResume,
)
from prodsim.models.replay_model import ReplayEvent
from prodsim.models.result_model import (
    SimulationReport,
    LeadTimeBreakdown,
    StationStats,
    BufferStats,
    ResourceStats,
    OrderReport,
    ProductReport,
    WipSample,
    BottleneckShare,
    KpiSummaryModel,
)

__all__ = [
    # 枚举
    "PartState",
    "PartKind",
    "ProductFamily",
    "StationKind",
    "EventKind",
    "ReplayEventType",
    "StationStatus",
    "SimulationStatus",
    "ErrorKind",
    "OrderStatus",
    "ReleasePolicy",
    "MessageType",
    # 输入
    "Operation",
    "CatalogOperation",
    "ProductCatalog",
    "StationConfig",
    "BufferConfig",
    "FlowConfig",
    "WorkerFlowConfig",
    "PoolConfig",
    "ToolPoolConfig",
    "LineConfig",
    "ShiftConfig",
    "TimeRule",
    "RunSettings",
    "OrderRow",
    "routing_key",
    "product_type_id",
    # 零件
    "Part",
    "BomEntry",
    "TimeBuckets",
    # 事件
    "Event",
    "OrderTicket",
    "OrderArrival",
    "PartArrivesAtNode",
    "WorkerArrivesAtStation",
    "OperationComplete",
    "TransportComplete",
    "ShiftResume",
    # 回放
    "ReplayEvent",
    # 报告
    "SimulationReport",
    "LeadTimeBreakdown",
    "StationStats",
    "BufferStats",
    "ResourceStats",
    "OrderReport",
    "ProductReport",
    "WipSample",
    "BottleneckShare",
    "KpiSummaryModel",
]
