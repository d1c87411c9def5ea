"""
结果查询接口
提供仿真报告、KPI、回放事件和明细表的查询

API端点:
- GET /api/results/{sim_id}: 获取完整仿真报告
- GET /api/results/{sim_id}/kpi: 获取KPI摘要
- GET /api/results/{sim_id}/replay: 获取回放事件（支持类型/节点/时间窗口筛选）
- GET /api/results/{sim_id}/stations: 获取工位/缓冲区/资源池统计
- GET /api/results/{sim_id}/orders: 获取订单与产品明细
- GET /api/results/{sim_id}/log: 获取运行日志
"""

from typing import Any, Optional

from fastapi import APIRouter, Query
from pydantic import BaseModel

from prodsim.core.event_collector import filter_replay_events
from prodsim.models.enums import ReplayEventType
from prodsim.models.result_model import KpiSummaryModel
from prodsim.utils.statistics import wip_statistics
from prodsim.utils.time_converter import sim_time_to_dict

router = APIRouter()


# ============ 数据模型 ============

class APIResponse(BaseModel):
    """统一API响应格式"""
    success: bool
    message: str
    data: Optional[Any] = None


# ============ 结果存储（与simulation.py共享） ============

from prodsim.api.simulation import simulation_results, simulation_logs


def _not_found(sim_id: str) -> APIResponse:
    return APIResponse(
        success=False,
        message=f"仿真结果 {sim_id} 不存在"
    )


# ============ API端点 ============

@router.get("/{sim_id}", response_model=APIResponse)
async def get_simulation_result(
    sim_id: str,
    include_replay: bool = Query(default=False, description="是否包含回放事件")
):
    """
    获取完整仿真报告
    """
    if sim_id not in simulation_results:
        return _not_found(sim_id)

    report = simulation_results[sim_id]
    return APIResponse(
        success=True,
        message="获取结果成功",
        data=report.to_dict(include_replay=include_replay)
    )


@router.get("/{sim_id}/kpi", response_model=APIResponse)
async def get_kpi(sim_id: str):
    """
    获取KPI摘要

    包括产量、交付周期、节拍、流动效率、OTIF、单位成本、在制品统计
    """
    if sim_id not in simulation_results:
        return _not_found(sim_id)

    report = simulation_results[sim_id]
    data = report.get_kpi_summary()
    data["summary"] = KpiSummaryModel.from_report(report).model_dump()
    data["wip"] = wip_statistics(report.wip_history)
    data["dynamic_bottlenecks"] = [b.to_dict() for b in report.dynamic_bottlenecks]

    return APIResponse(
        success=True,
        message="获取KPI成功",
        data=data
    )


@router.get("/{sim_id}/replay", response_model=APIResponse)
async def get_replay_events(
    sim_id: str,
    event_type: Optional[str] = Query(default=None, description="事件类型"),
    node_id: Optional[str] = Query(default=None, description="节点ID"),
    start: Optional[float] = Query(default=None, ge=0, description="开始时间（小时）"),
    end: Optional[float] = Query(default=None, ge=0, description="结束时间（小时）"),
    limit: int = Query(default=5000, ge=1, le=100000, description="返回数量限制")
):
    """
    获取回放事件

    筛选条件可组合，时间窗口按区间重叠判定
    """
    if sim_id not in simulation_results:
        return _not_found(sim_id)

    kind = None
    if event_type is not None:
        try:
            kind = ReplayEventType(event_type.upper())
        except ValueError:
            return APIResponse(
                success=False,
                message=f"未知的事件类型: {event_type}"
            )

    report = simulation_results[sim_id]
    events = filter_replay_events(report.replay_events, kind, node_id, start, end)

    return APIResponse(
        success=True,
        message=f"共 {len(events)} 条回放事件",
        data={
            "total": len(events),
            "events": [e.to_dict() for e in events[:limit]],
            "time_range": {
                "start": sim_time_to_dict(start or 0.0),
                "end": sim_time_to_dict(end if end is not None else report.duration),
            }
        }
    )


@router.get("/{sim_id}/stations", response_model=APIResponse)
async def get_station_stats(sim_id: str):
    """
    获取工位、缓冲区和资源池统计
    """
    if sim_id not in simulation_results:
        return _not_found(sim_id)

    report = simulation_results[sim_id]
    return APIResponse(
        success=True,
        message="获取统计成功",
        data={
            "stations": [s.to_dict() for s in report.station_stats],
            "buffers": [b.to_dict() for b in report.buffer_stats],
            "resources": [r.to_dict() for r in report.resource_stats],
        }
    )


@router.get("/{sim_id}/orders", response_model=APIResponse)
async def get_order_reports(
    sim_id: str,
    status: Optional[str] = Query(default=None, description="筛选订单状态")
):
    """
    获取订单与产品明细
    """
    if sim_id not in simulation_results:
        return _not_found(sim_id)

    report = simulation_results[sim_id]
    orders = [
        o.to_dict() for o in report.order_reports
        if status is None or o.status.value == status.upper()
    ]
    return APIResponse(
        success=True,
        message=f"共 {len(orders)} 个订单",
        data={
            "otif": round(report.otif, 1),
            "orders": orders,
            "products": [p.to_dict() for p in report.product_reports],
        }
    )


@router.get("/{sim_id}/log", response_model=APIResponse)
async def get_simulation_log(
    sim_id: str,
    tail: int = Query(default=200, ge=1, description="返回最后N行")
):
    """
    获取运行日志
    """
    if sim_id not in simulation_logs:
        return _not_found(sim_id)

    log = simulation_logs[sim_id]
    return APIResponse(
        success=True,
        message=f"共 {len(log)} 行日志",
        data=log[-tail:]
    )
