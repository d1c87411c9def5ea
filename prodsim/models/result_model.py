"""
仿真结果模型
定义仿真运行后的报告数据结构

模型:
- LeadTimeBreakdown: 交付周期构成
- StationStats / BufferStats / ResourceStats: 工位、缓冲区、资源池统计
- OrderReport / ProductReport: 订单与产品明细
- WipSample / BottleneckShare: 在制品时间序列与动态瓶颈
- SimulationReport: 完整仿真报告
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from prodsim.models.enums import ErrorKind, OrderStatus, SimulationStatus
from prodsim.models.replay_model import ReplayEvent


@dataclass
class LeadTimeBreakdown:
    """平均交付周期构成（小时）"""
    processing: float = 0.0
    transport: float = 0.0
    wait: float = 0.0
    blocked: float = 0.0

    @property
    def total(self) -> float:
        return self.processing + self.transport + self.wait + self.blocked

    def to_dict(self) -> dict:
        return {
            "processing": self.processing,
            "transport": self.transport,
            "wait": self.wait,
            "blocked": self.blocked,
        }


@dataclass
class StationStats:
    """
    工位统计

    百分比均以 已付工时 × 能力 为分母

    Attributes:
        utilization: 利用率（%）
        starvation: 饥饿率（%）
        blocked: 阻塞率（%，剩余部分）
        breakdown_pct: 故障停机率（%）
        failures: 故障次数
        max_queue: 最大排队数
    """
    id: str
    name: str
    kind: str
    capacity: int
    busy_time: float = 0.0
    starved_time: float = 0.0
    downtime: float = 0.0
    utilization: float = 0.0
    starvation: float = 0.0
    blocked: float = 0.0
    breakdown_pct: float = 0.0
    failures: int = 0
    max_queue: int = 0
    operations_completed: int = 0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "kind": self.kind,
            "capacity": self.capacity,
            "busy_time": self.busy_time,
            "starved_time": self.starved_time,
            "downtime": self.downtime,
            "utilization": round(self.utilization, 1),
            "starvation": round(self.starvation, 1),
            "blocked": round(self.blocked, 1),
            "breakdown_pct": round(self.breakdown_pct, 1),
            "failures": self.failures,
            "max_queue": self.max_queue,
            "operations_completed": self.operations_completed,
        }


@dataclass
class BufferStats:
    """缓冲区统计"""
    id: str
    name: str
    capacity: int
    max_queue: int = 0

    @property
    def utilization(self) -> float:
        """最高占用率（%）"""
        if self.capacity <= 0:
            return 0.0
        return self.max_queue / self.capacity * 100

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "capacity": self.capacity,
            "max_queue": self.max_queue,
            "utilization": round(self.utilization, 1),
        }


@dataclass
class ResourceStats:
    """
    资源池统计

    出勤成本 = 已付工时 × 人数 × 小时费率，与实际利用率无关
    """
    id: str
    name: str
    resource_type: str
    capacity: int
    hours_worked: float = 0.0
    paid_hours: float = 0.0
    attendance_cost: float = 0.0

    @property
    def utilization(self) -> float:
        """利用率（%）"""
        if self.paid_hours <= 0:
            return 0.0
        return self.hours_worked / self.paid_hours * 100

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "resource_type": self.resource_type,
            "capacity": self.capacity,
            "hours_worked": round(self.hours_worked, 2),
            "paid_hours": self.paid_hours,
            "utilization": round(self.utilization, 1),
            "attendance_cost": round(self.attendance_cost, 2),
        }


@dataclass
class OrderReport:
    """订单明细"""
    id: str
    code: str
    size: str
    due_date: Optional[float]
    start_time: float
    end_time: float
    total_parts: int = 0
    finished_parts: int = 0
    scrapped_parts: int = 0
    on_time: bool = True
    status: OrderStatus = OrderStatus.OK
    components_status: Dict[str, List[str]] = field(
        default_factory=lambda: {"processing": [], "ready": [], "todo": []}
    )

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    @property
    def progress(self) -> str:
        return f"{self.finished_parts}/{self.total_parts}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "size": self.size,
            "due_date": self.due_date,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "duration": round(self.duration, 2),
            "progress": self.progress,
            "scraps": self.scrapped_parts,
            "on_time": self.on_time,
            "status": self.status.value,
            "components_status": self.components_status,
        }


@dataclass
class ProductReport:
    """产品明细（按 类别+代码 汇总终态零件）"""
    kind: str
    code: str
    count: int = 0
    scraps: int = 0
    processing: Dict[str, float] = field(default_factory=dict)
    wait: Dict[str, float] = field(default_factory=dict)
    other: Dict[str, float] = field(default_factory=dict)

    @property
    def scrap_rate(self) -> float:
        """报废率（%）"""
        if self.count == 0:
            return 0.0
        return self.scraps / self.count * 100

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "code": self.code,
            "count": self.count,
            "scraps": self.scraps,
            "scrap_rate": f"{self.scrap_rate:.1f}%",
            "processing": self.processing,
            "wait": self.wait,
            "other": self.other,
        }


@dataclass
class WipSample:
    """在制品采样"""
    time: float
    count: int
    value: float

    def to_dict(self) -> dict:
        return {"time": self.time, "count": self.count, "value": self.value}


@dataclass
class BottleneckShare:
    """动态瓶颈：某工位成为负荷最高工位的采样小时数"""
    id: str
    name: str
    hours: int

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "hours": self.hours}


@dataclass
class SimulationReport:
    """
    仿真报告

    致命错误时 status=FAILED，error/error_kind 给出原因，其余字段为已累计的部分统计

    Attributes:
        duration: 仿真时长（小时）
        working_hours_total: 仿真时长内的已付工时
        produced: 完成零件数
        scrapped: 报废零件数
        avg_lead_time: 平均交付周期
        avg_flow_efficiency: 平均流动效率（%）
        actual_takt / target_takt: 实际/目标节拍（小时）
        otif: 准时交付率（%）
        cpu: 单位成本
    """
    sim_id: str = ""
    status: SimulationStatus = SimulationStatus.COMPLETED
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    validation_errors: List[str] = field(default_factory=list)
    omitted_error_count: int = 0

    duration: float = 0.0
    working_hours_total: float = 0.0
    produced: int = 0
    scrapped: int = 0
    avg_lead_time: float = 0.0
    avg_flow_efficiency: float = 0.0
    lead_time_breakdown: LeadTimeBreakdown = field(default_factory=LeadTimeBreakdown)
    actual_takt: float = 0.0
    target_takt: float = 0.0
    otif: float = 100.0
    cpu: float = 0.0
    total_labor_cost: float = 0.0
    total_energy_cost: float = 0.0
    total_material_cost: float = 0.0

    station_stats: List[StationStats] = field(default_factory=list)
    buffer_stats: List[BufferStats] = field(default_factory=list)
    resource_stats: List[ResourceStats] = field(default_factory=list)
    dynamic_bottlenecks: List[BottleneckShare] = field(default_factory=list)
    order_reports: List[OrderReport] = field(default_factory=list)
    product_reports: List[ProductReport] = field(default_factory=list)
    wip_history: List[WipSample] = field(default_factory=list)
    replay_events: List[ReplayEvent] = field(default_factory=list)

    steps: int = 0
    created_at: str = ""
    completed_at: str = ""

    @property
    def failed(self) -> bool:
        return self.status == SimulationStatus.FAILED

    @property
    def scrap_rate(self) -> float:
        """报废率（%）"""
        total = self.produced + self.scrapped
        if total == 0:
            return 0.0
        return self.scrapped / total * 100

    def get_station_stat(self, station_id: str) -> Optional[StationStats]:
        """获取指定工位的统计数据"""
        for stat in self.station_stats:
            if stat.id == station_id:
                return stat
        return None

    def get_order_report(self, order_id: str) -> Optional[OrderReport]:
        """获取指定订单的明细"""
        for report in self.order_reports:
            if report.id == order_id:
                return report
        return None

    def to_dict(self, include_replay: bool = True) -> dict:
        """转换为字典"""
        data = {
            "sim_id": self.sim_id,
            "status": self.status.value,
            "error": self.error,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "validation_errors": list(self.validation_errors),
            "omitted_error_count": self.omitted_error_count,
            "duration": self.duration,
            "working_hours_total": self.working_hours_total,
            "produced": self.produced,
            "scrapped": self.scrapped,
            "avg_lead_time": self.avg_lead_time,
            "avg_flow_efficiency": self.avg_flow_efficiency,
            "lead_time_breakdown": self.lead_time_breakdown.to_dict(),
            "actual_takt": self.actual_takt,
            "target_takt": self.target_takt,
            "otif": round(self.otif, 1),
            "cpu": round(self.cpu, 2),
            "total_labor_cost": self.total_labor_cost,
            "total_energy_cost": self.total_energy_cost,
            "total_material_cost": self.total_material_cost,
            "station_stats": [s.to_dict() for s in self.station_stats],
            "buffer_stats": [b.to_dict() for b in self.buffer_stats],
            "resource_stats": [r.to_dict() for r in self.resource_stats],
            "dynamic_bottlenecks": [b.to_dict() for b in self.dynamic_bottlenecks],
            "order_reports": [o.to_dict() for o in self.order_reports],
            "product_reports": [p.to_dict() for p in self.product_reports],
            "wip_history": [w.to_dict() for w in self.wip_history],
            "replay_events_count": len(self.replay_events),
            "steps": self.steps,
            "created_at": self.created_at,
            "completed_at": self.completed_at,
        }
        if include_replay:
            data["replay_events"] = [e.to_dict() for e in self.replay_events]
        return data

    def get_kpi_summary(self) -> dict:
        """获取KPI摘要"""
        return {
            "production": {
                "produced": self.produced,
                "scrapped": self.scrapped,
                "scrap_rate": f"{self.scrap_rate:.1f}%",
                "otif": f"{self.otif:.1f}%",
            },
            "time": {
                "duration_hours": self.duration,
                "working_hours_total": self.working_hours_total,
                "avg_lead_time_hours": self.avg_lead_time,
                "lead_time_breakdown": self.lead_time_breakdown.to_dict(),
                "actual_takt_hours": self.actual_takt,
                "target_takt_hours": self.target_takt,
            },
            "efficiency": {
                "avg_flow_efficiency": f"{self.avg_flow_efficiency:.1f}%",
                "top_bottleneck": self.dynamic_bottlenecks[0].name if self.dynamic_bottlenecks else None,
            },
            "cost": {
                "cpu": round(self.cpu, 2),
                "labor": round(self.total_labor_cost, 2),
                "energy": round(self.total_energy_cost, 2),
                "material": round(self.total_material_cost, 2),
            },
        }


# Pydantic版本（用于API）
class KpiSummaryModel(BaseModel):
    """KPI摘要模型（Pydantic）"""
    sim_id: str = Field(description="仿真ID")
    status: str = Field(description="仿真状态")
    produced: int = Field(default=0, description="完成零件数")
    scrapped: int = Field(default=0, description="报废零件数")
    otif: float = Field(default=100.0, description="准时交付率（%）")
    cpu: float = Field(default=0.0, description="单位成本")
    avg_lead_time: float = Field(default=0.0, description="平均交付周期（小时）")
    actual_takt: float = Field(default=0.0, description="实际节拍（小时）")
    target_takt: float = Field(default=0.0, description="目标节拍（小时）")
    error: Optional[str] = Field(default=None, description="致命错误")

    @classmethod
    def from_report(cls, report: SimulationReport) -> "KpiSummaryModel":
        return cls(
            sim_id=report.sim_id,
            status=report.status.value,
            produced=report.produced,
            scrapped=report.scrapped,
            otif=round(report.otif, 1),
            cpu=round(report.cpu, 2),
            avg_lead_time=report.avg_lead_time,
            actual_takt=report.actual_takt,
            target_takt=report.target_takt,
            error=report.error,
        )
