"""
仿真输入模型
定义生产线配置、产品库、订单和运行参数

配置项:
- 生产线（工位/缓冲区/物流/工人池/工具池/工人路径/工艺路线）
- 产品库（按尺寸与代码的工序列表）
- 订单行（BOM段字符串/尺寸/下单日期/交期）
- 运行参数（班次/节拍/质检与包装规则/装配顺序/随机种子）
"""

from typing import Dict, List, Optional
from pydantic import BaseModel, Field, field_validator

from prodsim.models.enums import ProductFamily, ReleasePolicy, StationKind
from prodsim.utils.time_converter import parse_clock


# ============ 工艺与产品库 ============

class Operation(BaseModel):
    """
    工艺路线中的单道工序

    duration_hours / operators_required 为空时从产品库按工序ID补全
    """
    id: str = Field(description="工序ID")
    name: str = Field(default="", description="工序名称")
    duration_hours: Optional[float] = Field(default=None, ge=0, description="标准工时（小时）")
    operators_required: Optional[int] = Field(default=None, ge=1, description="所需操作工人数")


class CatalogOperation(BaseModel):
    """产品库中的工序条目"""
    id: str
    name: str = ""
    time_hours: float = Field(default=0.0, ge=0, description="工时（小时）")
    operators: int = Field(default=1, ge=1, description="操作工人数")
    phase: int = Field(default=0, ge=0, description="阶段（0=加工, 1=装配）")


class ProductCatalog(BaseModel):
    """
    产品库

    结构: 产品族 -> 尺寸 -> 代码 -> 工序列表
    """
    casings: Dict[str, Dict[str, List[CatalogOperation]]] = Field(default_factory=dict)
    functions: Dict[str, Dict[str, List[CatalogOperation]]] = Field(default_factory=dict)

    def products(self, family: ProductFamily) -> Dict[str, Dict[str, List[CatalogOperation]]]:
        """获取某一产品族的全部条目"""
        return self.casings if family == ProductFamily.CASINGS else self.functions

    def find_operation(
        self,
        family: ProductFamily,
        op_id: str,
        size: Optional[str] = None,
        code: Optional[str] = None
    ) -> Optional[CatalogOperation]:
        """
        按工序ID查找产品库条目

        优先在 (size, code) 对应的列表中查找，找不到再在整个产品族中查找

        Args:
            family: 产品族
            op_id: 工序ID
            size: 尺寸（可选）
            code: 产品代码（可选）

        Returns:
            工序条目，未找到返回None
        """
        entries = self.products(family)
        if size is not None and code is not None:
            for op in entries.get(size, {}).get(code, []):
                if op.id == op_id:
                    return op
        for by_code in entries.values():
            for ops in by_code.values():
                for op in ops:
                    if op.id == op_id:
                        return op
        return None


# ============ 生产线 ============

class StationConfig(BaseModel):
    """工位配置"""
    id: str = Field(description="工位ID")
    name: str = Field(default="", description="工位名称")
    kind: StationKind = Field(default=StationKind.SUBASSEMBLY, description="工位类型")
    capacity: int = Field(default=1, ge=1, description="并行加工能力")
    allowed_operations: List[str] = Field(default_factory=list, description="可执行的工序ID")
    variance_pct: float = Field(default=0.0, ge=0, le=100, description="工时波动（±%）")
    failure_prob: float = Field(default=0.0, ge=0, le=100, description="故障概率（%）")


class BufferConfig(BaseModel):
    """缓冲区配置"""
    id: str = Field(description="缓冲区ID")
    name: str = Field(default="", description="缓冲区名称")
    capacity: int = Field(default=10, ge=1, description="容量（仅用于统计）")
    allowed_product_types: List[str] = Field(
        default_factory=list,
        description="允许的产品类型（family_size_code）"
    )
    is_entry: bool = Field(default=False, description="是否为入口缓冲区")
    is_exit: bool = Field(default=False, description="是否为出口缓冲区")


class FlowConfig(BaseModel):
    """物流路径（节点 -> 节点）"""
    id: str
    from_node: str
    to_node: str
    distance: float = Field(default=0.0, ge=0, description="距离（米）")


class WorkerFlowConfig(BaseModel):
    """工人路径（工人池 -> 工位）"""
    id: str
    from_pool: str
    to_station: str
    distance: float = Field(default=0.0, ge=0, description="距离（米）")


class PoolConfig(BaseModel):
    """工人池配置"""
    id: str
    name: str = ""
    capacity: int = Field(default=1, ge=1, description="人数")
    speed: float = Field(default=1.0, gt=0, description="行走速度（米/秒）")
    cost_per_hour: float = Field(default=0.0, ge=0, description="出勤成本（每人每小时）")


class ToolPoolConfig(PoolConfig):
    """工具池配置（搬运工具）"""
    assigned_flows: List[str] = Field(default_factory=list, description="绑定的物流路径ID")


class LineConfig(BaseModel):
    """
    生产线配置

    routings 的键格式为 "{family}_{size}_{code}_phase{n}"
    """
    stations: List[StationConfig] = Field(default_factory=list)
    buffers: List[BufferConfig] = Field(default_factory=list)
    flows: List[FlowConfig] = Field(default_factory=list)
    worker_pools: List[PoolConfig] = Field(default_factory=list)
    tool_pools: List[ToolPoolConfig] = Field(default_factory=list)
    worker_flows: List[WorkerFlowConfig] = Field(default_factory=list)
    routings: Dict[str, List[Operation]] = Field(default_factory=dict)

    @property
    def node_ids(self) -> List[str]:
        """全部节点ID（工位 + 缓冲区）"""
        return [s.id for s in self.stations] + [b.id for b in self.buffers]


def routing_key(family: ProductFamily, size: str, code: str, phase: int) -> str:
    """生成工艺路线键"""
    return f"{family.value}_{size}_{code}_phase{phase}"


def product_type_id(family: ProductFamily, size: str, code: str) -> str:
    """生成产品类型ID（缓冲区 allowed_product_types 使用）"""
    return f"{family.value}_{size}_{code}"


# ============ 运行参数 ============

class ShiftConfig(BaseModel):
    """
    班次配置

    end_hour <= start_hour 表示跨夜班次
    """
    id: str = "1"
    active: bool = True
    days_per_week: int = Field(default=5, ge=0, le=7, description="每周工作天数（从第0天起）")
    start_hour: float = Field(default=6.0, description="开始时刻（小时）")
    end_hour: float = Field(default=14.0, description="结束时刻（小时）")

    @field_validator("start_hour", "end_hour", mode="before")
    @classmethod
    def _parse_clock(cls, value):
        return parse_clock(value)


class TimeRule(BaseModel):
    """质检/包装工时规则：基础时间 + 每个子件的附加时间"""
    base_time: float = Field(default=0.0, ge=0, description="基础时间（小时）")
    child_times: Dict[str, float] = Field(default_factory=dict, description="子件代码 -> 附加时间（小时）")


def _default_shifts() -> List[ShiftConfig]:
    return [
        ShiftConfig(id="1", active=True, days_per_week=5, start_hour=6, end_hour=14),
        ShiftConfig(id="2", active=False, days_per_week=5, start_hour=14, end_hour=22),
        ShiftConfig(id="3", active=False, days_per_week=5, start_hour=22, end_hour=6),
        ShiftConfig(id="4", active=False, days_per_week=2, start_hour=8, end_hour=16),
    ]


class RunSettings(BaseModel):
    """
    运行参数

    Attributes:
        start_date: 仿真零点对应的日期
        shifts: 班次表
        target_takt_minutes: 目标节拍（分钟）
        quality_rules / packing_rules: 尺寸 -> 工时规则
        assembly_sequence: 装配顺序（产品代码列表）
        random_seed: 随机种子（None表示不固定）
        max_steps: 事件步数上限
        release_policy: 资源池释放策略
    """
    start_date: str = Field(default="18-11-2025", description="仿真起始日期")
    shifts: List[ShiftConfig] = Field(default_factory=_default_shifts)
    target_takt_minutes: float = Field(default=0.0, ge=0, description="目标节拍（分钟）")
    quality_rules: Dict[str, TimeRule] = Field(default_factory=dict)
    packing_rules: Dict[str, TimeRule] = Field(default_factory=dict)
    assembly_sequence: List[str] = Field(default_factory=list)
    random_seed: Optional[int] = Field(default=None, description="随机种子")
    max_steps: int = Field(default=800000, ge=1, description="事件步数上限")
    release_policy: ReleasePolicy = Field(default=ReleasePolicy.HEAD_OF_LINE)

    # 成本参数
    parent_material_cost: float = Field(default=100.0, ge=0)
    child_material_cost: float = Field(default=20.0, ge=0)
    energy_cost_per_hour: float = Field(default=0.5, ge=0)

    # 流控参数
    admission_slack: int = Field(default=2, ge=0, description="工位准入余量")
    stagger_hours: float = Field(default=0.05, ge=0, description="同一订单各段的错开时间")

    class Config:
        json_schema_extra = {
            "example": {
                "start_date": "18-11-2025",
                "shifts": [
                    {"id": "1", "active": True, "days_per_week": 5, "start_hour": "06:00", "end_hour": "14:00"}
                ],
                "target_takt_minutes": 30,
                "quality_rules": {"60": {"base_time": 0.2, "child_times": {"A": 0.05}}},
                "assembly_sequence": ["M1", "A", "B"],
                "random_seed": 42
            }
        }


class OrderRow(BaseModel):
    """订单行"""
    order_id: Optional[str] = Field(default=None, description="订单号")
    sections: str = Field(default="", description="BOM段字符串，如 'M1-AB-M2-C'")
    size: str = Field(default="", description="尺寸")
    order_date: str = Field(default="", description="下单日期")
    due_date: Optional[str] = Field(default=None, description="交期")

    @property
    def is_blank(self) -> bool:
        """空行（缺少段字符串/尺寸/日期）"""
        return not (self.sections.strip() and self.size.strip() and self.order_date.strip())
