"""
枚举定义
包含系统中使用的所有枚举类型

枚举类:
- PartState: 零件状态（状态机）
- PartKind: 零件类别（父件/子件）
- ProductFamily: 产品族（外壳/功能件）
- StationKind: 工位类型（分装/总装/质检/包装）
- EventKind: 仿真事件类型
- ReplayEventType: 回放事件类型
- StationStatus: 工位回放状态
- SimulationStatus: 仿真状态
- ErrorKind: 致命错误分类
- OrderStatus: 订单状态
- ReleasePolicy: 资源池释放策略
- MessageType: 引擎消息类型
"""

from enum import Enum


class PartState(str, Enum):
    """
    零件状态枚举

    每次状态迁移都会把经过的时间计入迁移前状态对应的时间桶
    """
    CREATED = "CREATED"
    IDLE_IN_BUFFER = "IDLE_IN_BUFFER"
    IDLE_AT_STATION = "IDLE_AT_STATION"
    WAITING_FOR_WORKER = "WAITING_FOR_WORKER"
    WAITING_FOR_WORKER_TRAVEL = "WAITING_FOR_WORKER_TRAVEL"
    PROCESSING = "PROCESSING"
    WAITING_FOR_TOOL = "WAITING_FOR_TOOL"
    IN_TRANSPORT = "IN_TRANSPORT"
    BLOCKED = "BLOCKED"
    ASSEMBLED = "ASSEMBLED"
    FINISHED = "FINISHED"
    SCRAPPED = "SCRAPPED"

    @property
    def is_terminal(self) -> bool:
        """是否为终态"""
        return self in (PartState.ASSEMBLED, PartState.FINISHED, PartState.SCRAPPED)


class PartKind(str, Enum):
    """
    零件类别

    Values:
        PARENT: 父件（外壳，承载装配）
        CHILD: 子件（功能模块）
    """
    PARENT = "PARENT"
    CHILD = "CHILD"

    @property
    def family(self) -> "ProductFamily":
        """对应的产品族"""
        return ProductFamily.CASINGS if self == PartKind.PARENT else ProductFamily.FUNCTIONS


class ProductFamily(str, Enum):
    """产品族（工艺路线键的前缀）"""
    CASINGS = "casings"
    FUNCTIONS = "functions"


class StationKind(str, Enum):
    """
    工位类型

    Values:
        SUBASSEMBLY: 分装工位，按工艺路线加工
        ASSEMBLY: 总装工位，父件与子件配套后加工
        QUALITY: 质检工位，按尺寸规则计时，可能报废
        PACKING: 包装工位，按尺寸规则计时
    """
    SUBASSEMBLY = "subassembly"
    ASSEMBLY = "assembly"
    QUALITY = "quality"
    PACKING = "packing"

    @property
    def consumes_routing(self) -> bool:
        """是否消耗工艺路线中的工序"""
        return self in (StationKind.SUBASSEMBLY, StationKind.ASSEMBLY)


class EventKind(str, Enum):
    """仿真事件类型"""
    ORDER_ARRIVAL = "ORDER_ARRIVAL"
    PART_ARRIVES_AT_NODE = "PART_ARRIVES_AT_NODE"
    WORKER_ARRIVES_AT_STATION = "WORKER_ARRIVES_AT_STATION"
    OPERATION_COMPLETE = "OPERATION_COMPLETE"
    TRANSPORT_COMPLETE = "TRANSPORT_COMPLETE"
    SHIFT_RESUME = "SHIFT_RESUME"


class ReplayEventType(str, Enum):
    """
    回放事件类型

    Values:
        STATION_STATE: 工位状态区间
        BUFFER_STATE: 缓冲区占用快照
        TRANSPORT: 物料搬运区间
        WORKER_TRAVEL: 工人行走区间
        RESOURCE_USAGE: 资源占用区间
    """
    STATION_STATE = "STATION_STATE"
    BUFFER_STATE = "BUFFER_STATE"
    TRANSPORT = "TRANSPORT"
    WORKER_TRAVEL = "WORKER_TRAVEL"
    RESOURCE_USAGE = "RESOURCE_USAGE"


class StationStatus(str, Enum):
    """工位回放状态"""
    RUN = "RUN"
    IDLE = "IDLE"
    WAITING_FOR_WORKER = "WAITING_FOR_WORKER"
    STOP = "STOP"
    BLOCKED = "BLOCKED"


class SimulationStatus(str, Enum):
    """
    仿真状态枚举

    Values:
        PENDING: 等待中
        RUNNING: 运行中
        COMPLETED: 已完成
        FAILED: 失败
    """
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class ErrorKind(str, Enum):
    """
    致命错误分类

    Values:
        CONFIGURATION: 配置完整性错误
        SCHEDULING: 调度不变量错误
        OPERATIONAL: 运行状态错误（如无有效班次）
    """
    CONFIGURATION = "CONFIGURATION"
    SCHEDULING = "SCHEDULING"
    OPERATIONAL = "OPERATIONAL"


class OrderStatus(str, Enum):
    """订单状态"""
    OK = "OK"
    SCRAPPED = "SCRAPPED"
    LATE = "LATE"
    NO_DUE_DATE = "NO_DUE_DATE"
    IN_PROGRESS = "IN_PROGRESS"


class ReleasePolicy(str, Enum):
    """
    资源池释放策略

    Values:
        HEAD_OF_LINE: 只检查等待队列队首（严格FIFO，大请求会阻塞后续小请求）
        FIRST_FIT: 授予第一个可满足的等待者
    """
    HEAD_OF_LINE = "head_of_line"
    FIRST_FIT = "first_fit"


class MessageType(str, Enum):
    """引擎与宿主之间的消息类型"""
    START_SIMULATION = "START_SIMULATION"
    SIMULATION_LOG = "SIMULATION_LOG"
    SIMULATION_RESULTS = "SIMULATION_RESULTS"
    FATAL_ERROR = "FATAL_ERROR"


# 状态 -> 时间桶
STATE_BUCKET = {
    PartState.PROCESSING: "processing",
    PartState.IN_TRANSPORT: "transport",
    PartState.WAITING_FOR_WORKER_TRAVEL: "transport",
    PartState.BLOCKED: "blocked",
}

# 仅在工作时间内推进的状态（非工作时间部分计入等待）
CALENDAR_BOUND_STATES = (
    PartState.PROCESSING,
    PartState.IN_TRANSPORT,
    PartState.WAITING_FOR_WORKER_TRAVEL,
)
