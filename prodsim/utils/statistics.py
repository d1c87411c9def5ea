"""
KPI统计计算工具
提供仿真报告的统计分析功能

功能:
- 描述统计（最小/最大/平均）
- 交付周期构成与流动效率
- 准时交付率（OTIF）
- 动态瓶颈排序
- 在制品统计
"""

from collections import Counter
from typing import Dict, Iterable, List, Tuple

import numpy as np

from prodsim.models.enums import OrderStatus
from prodsim.models.part_model import Part
from prodsim.models.result_model import (
    BottleneckShare,
    LeadTimeBreakdown,
    OrderReport,
    WipSample,
)


def percent(part: float, whole: float) -> float:
    """
    计算百分比

    Returns:
        part / whole * 100，whole <= 0 时为0
    """
    if whole <= 0:
        return 0.0
    return part / whole * 100


def describe(values: Iterable[float]) -> Dict[str, float]:
    """
    描述统计

    Returns:
        {"min", "max", "avg"}（保留两位小数），空序列全部为0
    """
    data = np.asarray(list(values), dtype=float)
    if data.size == 0:
        return {"min": 0.0, "max": 0.0, "avg": 0.0}
    return {
        "min": round(float(data.min()), 2),
        "max": round(float(data.max()), 2),
        "avg": round(float(data.mean()), 2),
    }


def summarize_lead_times(parts: List[Part]) -> Tuple[float, float, LeadTimeBreakdown]:
    """
    汇总完成零件的交付周期

    Args:
        parts: 已完成的零件

    Returns:
        (平均交付周期, 平均流动效率%, 平均构成)
    """
    if not parts:
        return 0.0, 0.0, LeadTimeBreakdown()

    buckets = np.array(
        [[p.buckets.processing, p.buckets.transport, p.buckets.wait, p.buckets.blocked] for p in parts],
        dtype=float,
    )
    means = buckets.mean(axis=0)
    total_lead = float(buckets.sum())
    total_processing = float(buckets[:, 0].sum())
    breakdown = LeadTimeBreakdown(
        processing=float(means[0]),
        transport=float(means[1]),
        wait=float(means[2]),
        blocked=float(means[3]),
    )
    return total_lead / len(parts), percent(total_processing, total_lead), breakdown


def calculate_otif(orders: List[OrderReport]) -> float:
    """
    准时交付率

    只统计有交期的订单；没有任何有交期的订单时为100
    """
    dated = [o for o in orders if o.status != OrderStatus.NO_DUE_DATE]
    if not dated:
        return 100.0
    return percent(sum(1 for o in dated if o.on_time), len(dated))


def rank_bottlenecks(station_ids: Iterable[str], names: Dict[str, str]) -> List[BottleneckShare]:
    """
    按成为负荷最高工位的采样小时数排序

    Args:
        station_ids: 每次采样时的瓶颈工位ID
        names: 工位ID -> 名称
    """
    counts = Counter(station_ids)
    ranked = [
        BottleneckShare(id=station_id, name=names.get(station_id, station_id), hours=hours)
        for station_id, hours in counts.items()
    ]
    ranked.sort(key=lambda b: b.hours, reverse=True)
    return ranked


def wip_statistics(history: List[WipSample]) -> Dict[str, float]:
    """在制品统计（平均/最大数量与价值）"""
    if not history:
        return {"avg_count": 0.0, "max_count": 0, "avg_value": 0.0, "max_value": 0.0}
    counts = np.array([s.count for s in history], dtype=float)
    values = np.array([s.value for s in history], dtype=float)
    return {
        "avg_count": round(float(counts.mean()), 2),
        "max_count": int(counts.max()),
        "avg_value": round(float(values.mean()), 2),
        "max_value": round(float(values.max()), 2),
    }
