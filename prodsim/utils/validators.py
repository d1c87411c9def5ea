"""
数据验证工具
提供运行前的配置完整性与产线拓扑校验

功能:
- 订单所需工艺路线的完整性校验
- 产线拓扑校验（NetworkX）
- 错误列表截断
- 仿真请求综合校验
"""

from typing import List, Tuple

import networkx as nx

from prodsim.errors import OrderFormatError
from prodsim.models.config_model import (
    LineConfig,
    OrderRow,
    ProductCatalog,
    RunSettings,
    routing_key,
    product_type_id,
)
from prodsim.models.enums import ProductFamily
from prodsim.utils.order_parser import parse_order_string

INTEGRITY_ERROR_LIMIT = 10


def validate_routing_integrity(config: LineConfig, orders: List[OrderRow]) -> List[str]:
    """
    校验每个订单的父件加工路线（phase0）是否存在

    格式错误的订单在此跳过，运行时记录日志

    Args:
        config: 生产线配置
        orders: 订单列表

    Returns:
        错误列表（每条都包含缺失的路线键）
    """
    errors = []
    for index, order in enumerate(orders):
        if order.is_blank:
            continue
        try:
            bom = parse_order_string(order.sections, order.size)
        except OrderFormatError:
            continue
        for parent in bom:
            key = routing_key(ProductFamily.CASINGS, parent.size, parent.code, 0)
            if key not in config.routings:
                errors.append(
                    f"数据错误: 缺少工艺路线 '{key}'（订单: {order.order_id or index + 1}）"
                )
    return errors


def format_integrity_errors(errors: List[str], limit: int = INTEGRITY_ERROR_LIMIT) -> Tuple[List[str], int]:
    """
    截断错误列表

    Returns:
        (展示的错误, 被省略的数量)
    """
    shown = errors[:limit]
    return shown, max(0, len(errors) - limit)


def build_line_graph(config: LineConfig) -> nx.DiGraph:
    """
    构建产线有向图（节点为工位与缓冲区，边为物流路径）
    """
    graph = nx.DiGraph()
    for station in config.stations:
        graph.add_node(station.id, node_type="station", kind=station.kind.value)
    for buffer in config.buffers:
        graph.add_node(
            buffer.id,
            node_type="buffer",
            is_entry=buffer.is_entry,
            is_exit=buffer.is_exit,
        )
    for flow in config.flows:
        if flow.from_node in graph and flow.to_node in graph:
            graph.add_edge(flow.from_node, flow.to_node, flow_id=flow.id, distance=flow.distance)
    return graph


def validate_line_topology(config: LineConfig) -> Tuple[List[str], List[str]]:
    """
    校验产线拓扑

    错误:
    - 节点ID重复
    - 物流路径引用不存在的节点
    - 工人路径引用不存在的工人池或工位

    警告:
    - 没有入口/出口缓冲区
    - 工位从任何入口缓冲区都不可达
    - 工具池绑定了不存在的物流路径
    - 同一工位绑定了多条工人路径（只使用第一条）

    Returns:
        (错误列表, 警告列表)
    """
    errors: List[str] = []
    warnings: List[str] = []

    node_ids = config.node_ids
    seen = set()
    for node_id in node_ids:
        if node_id in seen:
            errors.append(f"重复的节点ID: {node_id}")
        seen.add(node_id)

    for flow in config.flows:
        for end in (flow.from_node, flow.to_node):
            if end not in seen:
                errors.append(f"物流路径 '{flow.id}' 引用了不存在的节点 '{end}'")

    station_ids = {s.id for s in config.stations}
    pool_ids = {p.id for p in config.worker_pools}
    bound = set()
    for worker_flow in config.worker_flows:
        if worker_flow.from_pool not in pool_ids:
            errors.append(f"工人路径 '{worker_flow.id}' 引用了不存在的工人池 '{worker_flow.from_pool}'")
        if worker_flow.to_station not in station_ids:
            errors.append(f"工人路径 '{worker_flow.id}' 引用了不存在的工位 '{worker_flow.to_station}'")
        if worker_flow.to_station in bound:
            warnings.append(f"工位 '{worker_flow.to_station}' 绑定了多条工人路径，只使用第一条")
        bound.add(worker_flow.to_station)

    flow_ids = {f.id for f in config.flows}
    for pool in config.tool_pools:
        for flow_id in pool.assigned_flows:
            if flow_id not in flow_ids:
                warnings.append(f"工具池 '{pool.id}' 绑定了不存在的物流路径 '{flow_id}'")

    entries = [b.id for b in config.buffers if b.is_entry]
    if not entries:
        warnings.append("没有入口缓冲区，订单无法投产")
    if not any(b.is_exit for b in config.buffers):
        warnings.append("没有出口缓冲区，零件只能在末端工位完成")

    graph = build_line_graph(config)
    reachable = set()
    for entry in entries:
        reachable |= nx.descendants(graph, entry) | {entry}
    for station in config.stations:
        if entries and station.id not in reachable:
            warnings.append(f"工位 '{station.id}' 从任何入口缓冲区都不可达")

    return errors, warnings


def validate_product_entries(config: LineConfig, orders: List[OrderRow]) -> List[str]:
    """
    检查订单中的产品类型是否有入口缓冲区接收

    Returns:
        警告列表
    """
    accepted = set()
    for buffer in config.buffers:
        if buffer.is_entry:
            accepted.update(buffer.allowed_product_types)

    warnings = []
    missing = set()
    for order in orders:
        if order.is_blank:
            continue
        try:
            bom = parse_order_string(order.sections, order.size)
        except OrderFormatError as e:
            warnings.append(f"订单 '{order.order_id or order.sections}' 格式错误: {e}")
            continue
        for parent in bom:
            types = [product_type_id(ProductFamily.CASINGS, parent.size, parent.code)]
            types += [
                product_type_id(ProductFamily.FUNCTIONS, child.size, child.code)
                for child in parent.children
            ]
            missing.update(t for t in types if t not in accepted)
    for type_id in sorted(missing):
        warnings.append(f"没有入口缓冲区接收产品类型 '{type_id}'")
    return warnings


def validate_simulation_request(
    config: LineConfig,
    catalog: ProductCatalog,
    orders: List[OrderRow],
    settings: RunSettings
) -> Tuple[bool, List[str], List[str]]:
    """
    综合校验仿真请求（不运行仿真）

    Returns:
        (是否有效, 错误列表, 警告列表)
    """
    errors = validate_routing_integrity(config, orders)
    topology_errors, warnings = validate_line_topology(config)
    errors.extend(topology_errors)
    warnings.extend(validate_product_entries(config, orders))

    if not any(s.active and s.days_per_week > 0 for s in settings.shifts):
        errors.append("没有有效班次，仿真无法执行任何工序")

    for key, operations in config.routings.items():
        family = ProductFamily.CASINGS if key.startswith(ProductFamily.CASINGS.value) else ProductFamily.FUNCTIONS
        for op in operations:
            if op.duration_hours is None and catalog.find_operation(family, op.id) is None:
                warnings.append(f"路线 '{key}' 的工序 '{op.id}' 没有工时，将使用默认工时")

    served = {op_id for s in config.stations for op_id in s.allowed_operations}
    for key, operations in config.routings.items():
        for op in operations:
            if op.id not in served:
                warnings.append(f"路线 '{key}' 的工序 '{op.id}' 没有任何工位可以执行")

    return len(errors) == 0, errors, warnings
