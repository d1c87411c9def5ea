"""
配置管理接口
提供默认运行参数的获取与仿真输入的校验

API端点:
- GET /api/config/default-settings: 获取默认运行参数
- POST /api/config/validate: 校验仿真输入（不运行仿真）
"""

import logging
import os
from typing import Any, List, Optional

import yaml
from fastapi import APIRouter
from pydantic import BaseModel, Field, ValidationError

from prodsim.api.simulation import SimulationRequest
from prodsim.models.config_model import RunSettings
from prodsim.utils.validators import format_integrity_errors, validate_simulation_request

logger = logging.getLogger(__name__)

router = APIRouter()

DEFAULT_SETTINGS_PATH = os.path.join(
    os.path.dirname(os.path.dirname(os.path.dirname(__file__))),
    "config", "default_settings.yaml"
)


# ============ 请求/响应模型 ============

class APIResponse(BaseModel):
    """统一API响应格式"""
    success: bool = Field(description="请求是否成功")
    message: str = Field(description="响应消息")
    data: Optional[Any] = Field(default=None, description="响应数据")


class ConfigValidationResult(BaseModel):
    """配置验证结果"""
    valid: bool
    errors: List[str] = []
    omitted_error_count: int = 0
    warnings: List[str] = []


# ============ 辅助函数 ============

def load_default_settings(path: str = DEFAULT_SETTINGS_PATH) -> RunSettings:
    """
    加载默认运行参数

    文件缺失或内容无效时使用内置默认值
    """
    if not os.path.exists(path):
        return RunSettings()
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        return RunSettings(**data)
    except (OSError, yaml.YAMLError, ValidationError) as e:
        logger.warning("默认运行参数加载失败，使用内置默认值: %s", e)
        return RunSettings()


# ============ API端点 ============

@router.get("/default-settings", response_model=APIResponse)
async def get_default_settings():
    """
    获取默认运行参数

    包括班次表、节拍目标、质检/包装规则、装配顺序、成本参数
    """
    settings = load_default_settings()
    return APIResponse(
        success=True,
        message="获取默认运行参数成功",
        data=settings.model_dump(mode="json")
    )


@router.post("/validate", response_model=APIResponse)
async def validate_config(request: SimulationRequest):
    """
    校验仿真输入

    检查内容:
    - 订单所需的工艺路线是否存在
    - 产线拓扑（节点引用、可达性、入口/出口）
    - 是否存在有效班次
    - 工序是否有工位可以执行
    """
    valid, errors, warnings = validate_simulation_request(
        request.config, request.catalog, request.orders, request.settings
    )
    shown, omitted = format_integrity_errors(errors)

    result = ConfigValidationResult(
        valid=valid,
        errors=shown,
        omitted_error_count=omitted,
        warnings=warnings
    )

    return APIResponse(
        success=result.valid,
        message="配置验证通过" if result.valid else "配置存在错误",
        data=result.model_dump()
    )
