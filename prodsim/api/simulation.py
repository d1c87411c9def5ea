"""
仿真控制接口
提供仿真的启动、状态查询等功能

API端点:
- POST /api/simulation/run: 运行仿真
- GET /api/simulation/test: 运行示例产线仿真
- GET /api/simulation/status/{sim_id}: 获取仿真状态
- GET /api/simulation/list: 列出所有仿真记录
- DELETE /api/simulation/clear: 清除所有仿真记录
"""

import logging
import os
import queue
from typing import Any, Dict, List, Optional

import yaml
from fastapi import APIRouter
from pydantic import BaseModel, Field

from prodsim.core.worker import SimulationWorker, run_in_worker
from prodsim.models.config_model import LineConfig, OrderRow, ProductCatalog, RunSettings
from prodsim.models.result_model import SimulationReport

logger = logging.getLogger(__name__)

router = APIRouter()

DEMO_LINE_PATH = os.path.join(
    os.path.dirname(os.path.dirname(os.path.dirname(__file__))),
    "config", "demo_line.yaml"
)


# ============ 数据模型 ============

class SimulationRequest(BaseModel):
    """仿真请求"""
    config: LineConfig = Field(description="生产线配置")
    catalog: ProductCatalog = Field(default_factory=ProductCatalog, description="产品库")
    orders: List[OrderRow] = Field(default_factory=list, description="订单列表")
    settings: RunSettings = Field(default_factory=RunSettings, description="运行参数")


class APIResponse(BaseModel):
    """统一API响应格式"""
    success: bool
    message: str
    data: Optional[Any] = None


# ============ 仿真结果存储 ============

# 内存存储（生产环境应使用数据库）
simulation_results: Dict[str, SimulationReport] = {}
simulation_logs: Dict[str, List[str]] = {}

# 引擎只通过工作线程的消息访问
worker = SimulationWorker()


# ============ 辅助函数 ============

def load_demo_request(path: str = DEMO_LINE_PATH) -> SimulationRequest:
    """从YAML加载示例产线"""
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return SimulationRequest(**data)


def execute(request: SimulationRequest) -> APIResponse:
    """
    通过工作线程运行仿真并保存结果

    致命错误（配置/调度/运行）同样保存报告，以便查询部分统计
    """
    try:
        log, report, fatal = run_in_worker(
            worker, request.config, request.catalog, request.orders, request.settings
        )
    except queue.Empty:
        return APIResponse(success=False, message="仿真超时")

    if report is None:
        return APIResponse(
            success=False,
            message="仿真失败: 引擎内部错误",
            data={"errors": fatal, "log": log}
        )

    simulation_results[report.sim_id] = report
    simulation_logs[report.sim_id] = log

    if report.failed:
        return APIResponse(
            success=False,
            message=f"仿真失败: {report.error}",
            data=report.to_dict(include_replay=False)
        )
    return APIResponse(
        success=True,
        message=f"仿真完成，完成 {report.produced} 件，报废 {report.scrapped} 件",
        data=report.to_dict()
    )


# ============ API端点 ============

@router.post("/run", response_model=APIResponse)
def run_simulation(request: SimulationRequest):
    """
    运行仿真

    请求体:
    - config: 生产线配置（工位、缓冲区、物流、资源池、工艺路线）
    - catalog: 产品库
    - orders: 订单列表
    - settings: 运行参数（班次、规则、随机种子等）

    响应:
    - data: 仿真报告（失败时不含回放事件）
    """
    return execute(request)


@router.get("/test", response_model=APIResponse)
def run_test_simulation():
    """
    运行示例产线仿真

    使用 config/demo_line.yaml 中的产线、产品库、订单和参数
    """
    try:
        request = load_demo_request()
    except (OSError, yaml.YAMLError) as e:
        logger.error("示例产线加载失败: %s", e)
        return APIResponse(success=False, message=f"示例产线加载失败: {e}")
    return execute(request)


@router.get("/status/{sim_id}", response_model=APIResponse)
async def get_simulation_status(sim_id: str):
    """
    获取仿真状态
    """
    if sim_id not in simulation_results:
        return APIResponse(
            success=False,
            message=f"仿真 {sim_id} 不存在"
        )

    report = simulation_results[sim_id]
    return APIResponse(
        success=True,
        message=f"仿真状态: {report.status.value}",
        data={
            "sim_id": sim_id,
            "status": report.status.value,
            "error": report.error,
            "produced": report.produced,
            "created_at": report.created_at,
            "completed_at": report.completed_at
        }
    )


@router.get("/list", response_model=APIResponse)
async def list_simulations():
    """
    列出所有仿真记录
    """
    summaries = []
    for sim_id, report in simulation_results.items():
        summaries.append({
            "sim_id": sim_id,
            "status": report.status.value,
            "produced": report.produced,
            "otif": round(report.otif, 1),
            "cpu": round(report.cpu, 2),
            "created_at": report.created_at,
            "completed_at": report.completed_at
        })

    # 按创建时间倒序
    summaries.sort(key=lambda x: x["created_at"], reverse=True)

    return APIResponse(
        success=True,
        message=f"共 {len(summaries)} 条仿真记录",
        data=summaries
    )


@router.delete("/clear", response_model=APIResponse)
async def clear_simulations():
    """
    清除所有仿真记录
    """
    count = len(simulation_results)
    simulation_results.clear()
    simulation_logs.clear()

    return APIResponse(
        success=True,
        message=f"已清除 {count} 条仿真记录"
    )
