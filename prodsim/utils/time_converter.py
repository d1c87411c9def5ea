"""
时间转换工具
提供仿真时间与日历时间的相互转换

功能:
- "HH:MM" 班次时刻解析
- 订单日期解析（DD-MM-YYYY / YYYY-MM-DD）
- 日期差 -> 仿真小时
- 仿真小时 -> Day-Hour格式
"""

from datetime import datetime
from typing import Any, Dict, Optional, Union
import re

_CLOCK_PATTERN = re.compile(r"^\s*(\d{1,2})(?::(\d{1,2}))?\s*$")


def parse_clock(value: Union[str, int, float]) -> float:
    """
    解析班次时刻

    Args:
        value: "HH:MM" 字符串或小时数

    Returns:
        一天内的小时数（0-24）

    Example:
        >>> parse_clock("06:30")
        6.5
        >>> parse_clock(22)
        22.0
    """
    if isinstance(value, (int, float)):
        hours = float(value)
    else:
        match = _CLOCK_PATTERN.match(str(value))
        if not match:
            raise ValueError(f"无法解析时刻: '{value}'")
        hours = int(match.group(1)) + int(match.group(2) or 0) / 60
    if hours < 0 or hours > 24:
        raise ValueError(f"时刻超出范围: '{value}'")
    return hours


def parse_date(value: str) -> datetime:
    """
    解析订单日期

    两位数开头视为 DD-MM-YYYY，否则视为 YYYY-MM-DD

    Args:
        value: 日期字符串

    Returns:
        datetime对象
    """
    text = str(value).strip()
    parts = text.split("-")
    if len(parts) != 3:
        raise ValueError(f"无法解析日期: '{value}'")
    try:
        if len(parts[0]) <= 2:
            return datetime(int(parts[2]), int(parts[1]), int(parts[0]))
        return datetime(int(parts[0]), int(parts[1]), int(parts[2]))
    except ValueError as e:
        raise ValueError(f"无法解析日期: '{value}'") from e


def hours_between(start: str, end: str) -> float:
    """
    计算两个日期之间的小时差

    Args:
        start: 起始日期（仿真零点）
        end: 目标日期

    Returns:
        小时差（可能为负）
    """
    delta = parse_date(end) - parse_date(start)
    return delta.total_seconds() / 3600


def format_sim_time(hours: float) -> str:
    """
    将仿真小时转换为 Day-Hour 格式字符串

    Example:
        >>> format_sim_time(30.5)
        'D2 6.5h'
    """
    day = int(hours // 24) + 1
    hour_in_day = hours % 24
    return f"D{day} {hour_in_day:.1f}h"


def sim_time_to_dict(hours: float, start_date: Optional[str] = None) -> Dict[str, Any]:
    """
    将仿真小时转换为字典格式

    Args:
        hours: 仿真时间（小时）
        start_date: 仿真起始日期，提供时附带日历日期

    Returns:
        包含day, hour, formatted(, date)的字典
    """
    result: Dict[str, Any] = {
        "day": int(hours // 24) + 1,
        "hour": round(hours % 24, 2),
        "formatted": format_sim_time(hours),
    }
    if start_date:
        moment = parse_date(start_date).timestamp() + hours * 3600
        result["date"] = datetime.fromtimestamp(moment).strftime("%Y-%m-%d %H:%M")
    return result


def format_duration(hours: float) -> str:
    """
    格式化时长

    Example:
        >>> format_duration(26.5)
        '1天2.5小时'
    """
    if hours < 24:
        return f"{hours:.1f}小时"
    days = int(hours // 24)
    remaining = hours - days * 24
    if remaining < 0.05:
        return f"{days}天"
    return f"{days}天{remaining:.1f}小时"
