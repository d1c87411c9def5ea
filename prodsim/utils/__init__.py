"""
工具函数包
提供各种辅助功能

模块说明:
- time_converter.py: 时间转换工具
- order_parser.py: 订单BOM段字符串解析
- validators.py: 配置完整性与产线拓扑校验
- statistics.py: KPI统计计算

order_parser / validators / statistics 依赖数据模型，需按模块路径导入
"""

from prodsim.utils.time_converter import (
    parse_clock,
    parse_date,
    hours_between,
    format_sim_time,
    sim_time_to_dict,
    format_duration,
)

__all__ = [
    "parse_clock",
    "parse_date",
    "hours_between",
    "format_sim_time",
    "sim_time_to_dict",
    "format_duration",
]
