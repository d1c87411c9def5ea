"""
仿真引擎主控
生产线离散事件仿真的核心控制器

功能:
- 运行前校验：订单所需工艺路线、产线拓扑、有效班次
- 事件循环：按 (time, seq) 顺序逐个分发事件，步数上限保护
- 零件流转：订单展开、缓冲区推送、装配配套、工序加工、搬运
- 资源协调：工人池/工具池的请求、释放与唤醒
- 结果汇总：交付周期构成、工位/缓冲区/资源统计、OTIF、单位成本、回放事件

设计要点:
- 单次运行的全部可变数据放在 SimulationState 中，按引用传给每个处理器
- 引擎实例只保存只读的配置索引
- 处理器一次执行到底，等待通过零件停放在队列/资源池中表达，由释放或后续推送唤醒
- 缓冲区向工位推送受 队列长度 + 在途数量 < 能力 + 余量 约束（拉动式流控）
- 装配配套全有或全无：任一子件缺失则不产生任何副作用
- 非工作时间内被拒绝的推进动作，在下一个工作时刻由 ShiftResume 事件统一重试
- 致命错误写入日志和报告的 error 字段，不会抛出 run() 之外
"""

import logging
import math
import uuid
from collections import defaultdict
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np

from prodsim.core.calendar import ShiftCalendar
from prodsim.core.resource_pool import ResourcePool
from prodsim.core.state import (
    BottleneckSnapshot,
    Breakdown,
    BufferState,
    PendingTransport,
    SimulationState,
    StationState,
)
from prodsim.errors import (
    CalendarError,
    ConfigurationError,
    OperationalError,
    OrderFormatError,
    SchedulingError,
)
from prodsim.models.config_model import (
    FlowConfig,
    LineConfig,
    Operation,
    OrderRow,
    ProductCatalog,
    RunSettings,
    StationConfig,
    routing_key,
    product_type_id,
)
from prodsim.models.enums import (
    ErrorKind,
    EventKind,
    OrderStatus,
    PartKind,
    PartState,
    ProductFamily,
    SimulationStatus,
    StationKind,
    StationStatus,
)
from prodsim.models.event_model import (
    OperationComplete,
    OrderArrival,
    OrderTicket,
    PartArrivesAtNode,
    ShiftResume,
    TransportComplete,
    WorkerArrivesAtStation,
)
from prodsim.models.part_model import BomEntry, Part
from prodsim.models.result_model import (
    BufferStats,
    OrderReport,
    ProductReport,
    ResourceStats,
    SimulationReport,
    StationStats,
    WipSample,
)
from prodsim.utils.order_parser import parse_order_string
from prodsim.utils.statistics import (
    calculate_otif,
    describe,
    percent,
    rank_bottlenecks,
    summarize_lead_times,
)
from prodsim.utils.time_converter import format_sim_time, hours_between
from prodsim.utils.validators import (
    format_integrity_errors,
    validate_line_topology,
    validate_routing_integrity,
)

logger = logging.getLogger(__name__)

DEFAULT_OPERATION_HOURS = 0.1
DEFAULT_TRANSPORT_SPEED = 1.0
SECONDS_PER_HOUR = 3600
SCRAP_BASE_RATE = 0.01
REPAIR_MIN_HOURS = 1.0
REPAIR_SPREAD_HOURS = 2.0
WIP_SAMPLE_INTERVAL = 1.0
TOOLS_PER_TRANSPORT = 1
# 订单交期至少为到达后24小时
MIN_DUE_OFFSET_HOURS = 24.0

_PROCESSING_STATES = (PartState.PROCESSING, PartState.IN_TRANSPORT, PartState.WAITING_FOR_WORKER_TRAVEL)
_READY_STATES = (PartState.IDLE_IN_BUFFER, PartState.ASSEMBLED, PartState.FINISHED)


class SimulationEngine:
    """
    仿真引擎

    Args:
        config: 生产线配置
        catalog: 产品库（补全工序工时/人数）
        orders: 订单列表
        settings: 运行参数
    """

    def __init__(
        self,
        config: LineConfig,
        catalog: Optional[ProductCatalog] = None,
        orders: Optional[List[OrderRow]] = None,
        settings: Optional[RunSettings] = None
    ):
        self.config = config
        self.catalog = catalog or ProductCatalog()
        self.orders = list(orders or [])
        self.settings = settings or RunSettings()
        self.sim_id = str(uuid.uuid4())
        self.calendar = ShiftCalendar(self.settings.shifts)
        # 最近一次运行结束时的状态
        self.state: Optional[SimulationState] = None

        # 只读索引
        self.stations: Dict[str, StationConfig] = {s.id: s for s in config.stations}
        self.buffers = {b.id: b for b in config.buffers}
        self.flows_by_id = {f.id: f for f in config.flows}
        self.flows_from: Dict[str, List[FlowConfig]] = defaultdict(list)
        self.flows_to: Dict[str, List[FlowConfig]] = defaultdict(list)
        for flow in config.flows:
            self.flows_from[flow.from_node].append(flow)
            self.flows_to[flow.to_node].append(flow)
        self.worker_flow_for = {}
        for worker_flow in config.worker_flows:
            self.worker_flow_for.setdefault(worker_flow.to_station, worker_flow)
        self.tool_pool_for_flow = {}
        for pool in config.tool_pools:
            for flow_id in pool.assigned_flows:
                self.tool_pool_for_flow.setdefault(flow_id, pool.id)
        self.routings = self._resolve_routings()

        self._handlers: Dict[EventKind, Callable] = {
            EventKind.ORDER_ARRIVAL: self._on_order_arrival,
            EventKind.PART_ARRIVES_AT_NODE: self._on_part_arrives,
            EventKind.WORKER_ARRIVES_AT_STATION: self._on_worker_arrives,
            EventKind.OPERATION_COMPLETE: self._on_operation_complete,
            EventKind.TRANSPORT_COMPLETE: self._on_transport_complete,
            EventKind.SHIFT_RESUME: self._on_shift_resume,
        }

    # ============ 初始化 ============

    def _resolve_routings(self) -> Dict[str, List[Operation]]:
        """
        补全工艺路线中缺失的工时与人数

        工时为空或为0时依次取产品库条目、默认工时；人数缺省为1
        """
        resolved = {}
        for key, operations in self.config.routings.items():
            parts = key.split("_")
            family = ProductFamily.CASINGS if parts[0] == ProductFamily.CASINGS.value else ProductFamily.FUNCTIONS
            size, code = (parts[1], parts[2]) if len(parts) == 4 else (None, None)
            ops = []
            for op in operations:
                entry = None
                if not op.duration_hours or op.operators_required is None:
                    entry = self.catalog.find_operation(family, op.id, size, code)
                duration = op.duration_hours or (entry.time_hours if entry else None) or DEFAULT_OPERATION_HOURS
                operators = op.operators_required or (entry.operators if entry else 1)
                ops.append(op.model_copy(update={
                    "name": op.name or (entry.name if entry else op.id),
                    "duration_hours": duration,
                    "operators_required": operators,
                }))
            resolved[key] = ops
        return resolved

    def _create_state(self) -> SimulationState:
        state = SimulationState(rng=np.random.default_rng(self.settings.random_seed))
        for station in self.config.stations:
            state.stations[station.id] = StationState(capacity=station.capacity)
        for buffer in self.config.buffers:
            state.buffers[buffer.id] = BufferState()
        for pool in self.config.worker_pools:
            state.worker_pools[pool.id] = ResourcePool(
                pool.id, pool.name, pool.capacity, pool.speed, pool.cost_per_hour,
                self.settings.release_policy
            )
        for pool in self.config.tool_pools:
            state.tool_pools[pool.id] = ResourcePool(
                pool.id, pool.name, pool.capacity, pool.speed, pool.cost_per_hour,
                self.settings.release_policy
            )
        return state

    # ============ 运行入口 ============

    def run(self) -> Tuple[List[str], SimulationReport]:
        """
        运行仿真

        Returns:
            (运行日志, 仿真报告)
        """
        state = self.state = self._create_state()
        report = SimulationReport(sim_id=self.sim_id, created_at=datetime.now().isoformat())

        try:
            self._validate(state)
            if not self.calendar.has_active_shift():
                raise OperationalError("没有有效班次，仿真无法执行任何工序")
            self._seed_orders(state)
            if state.queue.is_empty():
                state.log_message("没有可执行的订单", logging.INFO)
            else:
                self._run_loop(state)
        except ConfigurationError as e:
            self._fail(state, report, ErrorKind.CONFIGURATION, str(e))
            report.validation_errors = list(e.errors)
            report.omitted_error_count = e.omitted
        except OperationalError as e:
            self._fail(state, report, ErrorKind.OPERATIONAL, str(e))
        except (SchedulingError, CalendarError) as e:
            self._fail(state, report, ErrorKind.SCHEDULING, str(e))

        self._finalize(state, report)
        report.completed_at = datetime.now().isoformat()
        return state.log, report

    def _fail(self, state: SimulationState, report: SimulationReport, kind: ErrorKind, message: str):
        report.status = SimulationStatus.FAILED
        report.error = message
        report.error_kind = kind
        state.log_message(f"!!! 仿真中止 [{kind.value}]: {message}", logging.ERROR)

    def _validate(self, state: SimulationState):
        """
        运行前完整性校验，失败时不调度任何事件

        Raises:
            ConfigurationError: 缺少工艺路线或拓扑引用错误
        """
        errors = validate_routing_integrity(self.config, self.orders)
        topology_errors, warnings = validate_line_topology(self.config)
        errors.extend(topology_errors)
        for warning in warnings:
            state.log_message(f"警告: {warning}", logging.WARNING)
        if not errors:
            return

        shown, omitted = format_integrity_errors(errors)
        state.log_message("!!! 已中止: 检测到数据完整性错误:", logging.ERROR)
        for message in shown:
            state.log_message(message, logging.ERROR)
        if omitted:
            state.log_message(f"...以及另外 {omitted} 个错误", logging.ERROR)
        state.log_message("请修正工艺路线配置或订单后重试", logging.ERROR)
        raise ConfigurationError(f"数据完整性校验失败（{len(errors)} 个错误）", shown, omitted)

    def _seed_orders(self, state: SimulationState):
        """为每个订单调度一个到达事件（到达时刻对齐到下一个工作时刻）"""
        for index, row in enumerate(self.orders):
            if row.is_blank:
                continue
            order_id = row.order_id or f"{index + 1}. {row.size or '?'}"
            try:
                arrival = max(0.0, hours_between(self.settings.start_date, row.order_date))
                due = None
                if row.due_date:
                    due = max(arrival + MIN_DUE_OFFSET_HOURS, hours_between(self.settings.start_date, row.due_date))
            except ValueError as e:
                state.log_message(f"订单 {order_id} 日期无法解析，已跳过: {e}", logging.WARNING)
                continue
            ticket = OrderTicket(order_id=order_id, sections=row.sections, size=row.size, due_date=due)
            state.queue.push(self.calendar.advance(arrival, 0), OrderArrival(order=ticket))

    def _run_loop(self, state: SimulationState):
        state.log_message("[Engine] 仿真开始", logging.INFO)
        max_steps = self.settings.max_steps

        while not state.queue.is_empty():
            state.steps += 1
            if state.steps > max_steps:
                raise SchedulingError(f"事件步数超过上限 {max_steps}，t={state.now:.2f}h")

            event = state.queue.pop()
            if event.time < state.now:
                raise SchedulingError(
                    f"事件时间 {event.time:.4f}h 早于当前时钟 {state.now:.4f}h（{event.kind.value}）"
                )
            working = event.time - state.now - self.calendar.non_working_time(state.now, event.time)
            if working > 0:
                self._accrue_starvation(state, working)
            state.now = event.time

            if state.now >= state.next_wip_sample:
                self._sample(state)
                state.next_wip_sample = math.floor(state.now / WIP_SAMPLE_INTERVAL) * WIP_SAMPLE_INTERVAL + WIP_SAMPLE_INTERVAL

            self._handlers[event.kind](state, event.payload)

        state.log_message(
            f"[Engine] 事件队列已清空，仿真时钟 {format_sim_time(state.now)}，共 {state.steps} 步",
            logging.INFO,
        )

    def _accrue_starvation(self, state: SimulationState, delta: float):
        """累计饥饿时间：队列为空且有空闲能力，delta只含工作时间"""
        for station_state in state.stations.values():
            if len(station_state.queue) == 0 and station_state.idle_slots > 0:
                station_state.total_starved_time += delta * station_state.idle_slots

    def _sample(self, state: SimulationState):
        """在制品与瓶颈采样"""
        wip = [p for p in state.parts.values() if self._in_process(state, p)]
        state.wip_history.append(WipSample(
            time=state.now,
            count=len(wip),
            value=sum(p.material_cost for p in wip),
        ))

        busiest, max_load = None, 0.0
        for station_id, station_state in state.stations.items():
            load = station_state.busy_slots / station_state.capacity
            if load > max_load:
                busiest, max_load = station_id, load
        if busiest is not None:
            state.bottleneck_snapshots.append(BottleneckSnapshot(state.now, busiest, max_load))

    def _in_process(self, state: SimulationState, part: Part) -> bool:
        """在制判定：未终结，或已装配但父件仍在制"""
        if part.state == PartState.ASSEMBLED:
            parent = state.parts.get(part.parent_id)
            return parent is not None and self._in_process(state, parent)
        return not part.is_terminal

    # ============ 订单与零件 ============

    def _on_order_arrival(self, state: SimulationState, payload: OrderArrival):
        order = payload.order
        state.order_sections[order.order_id] = order.sections
        state.order_sizes[order.order_id] = order.size
        try:
            bom = parse_order_string(order.sections, order.size)
        except OrderFormatError as e:
            state.log_message(f"订单 {order.order_id} 格式错误，已跳过: {e}", logging.WARNING)
            return

        stagger = 0.0
        for parent in bom:
            self._create_part(state, order, parent, stagger)
            for child in parent.children:
                self._create_part(state, order, child, stagger)
            stagger += self.settings.stagger_hours

    def _create_part(self, state: SimulationState, order: OrderTicket, entry: BomEntry, delay: float) -> Optional[Part]:
        family = entry.kind.family
        type_id = product_type_id(family, entry.size, entry.code)
        entry_buffer = next(
            (b for b in self.config.buffers if b.is_entry and type_id in b.allowed_product_types),
            None,
        )
        if entry_buffer is None:
            state.log_message(f"订单 {order.order_id}: 没有入口缓冲区接收 {type_id}，零件未投产", logging.WARNING)
            return None

        part = Part(
            id=state.next_part_id(),
            order_id=order.order_id,
            kind=entry.kind,
            product_code=entry.code,
            size_code=entry.size,
            routing=list(self.routings.get(routing_key(family, entry.size, entry.code, 0), [])),
            bom=list(entry.children),
            location=entry_buffer.id,
            created_at=state.now + delay,
            due_date=order.due_date,
            material_cost=(
                self.settings.parent_material_cost if entry.kind == PartKind.PARENT
                else self.settings.child_material_cost
            ),
        )
        state.parts[part.id] = part
        state.queue.push(part.created_at, PartArrivesAtNode(part_id=part.id, node_id=entry_buffer.id))
        return part

    def _on_part_arrives(self, state: SimulationState, payload: PartArrivesAtNode):
        part = state.parts.get(payload.part_id)
        if part is None:
            return
        node_id = payload.node_id
        part.location = node_id

        buffer = self.buffers.get(node_id)
        if buffer is not None:
            buffer_state = state.buffers[node_id]
            part.update_state(PartState.IDLE_IN_BUFFER, state.now, self.calendar)
            buffer_state.queue.enqueue(part.id)
            buffer_state.note_queue_length()
            self._record_buffer(state, node_id)
            if buffer.is_exit:
                self._finish_part(state, part)
                return
            self._try_push_from_buffer(state, node_id)
            for flow in self.flows_from[node_id]:
                station = self.stations.get(flow.to_node)
                if station is not None and station.kind == StationKind.ASSEMBLY:
                    self._try_start_assembly(state, station.id)
            return

        station_state = state.stations.get(node_id)
        if station_state is not None:
            if station_state.incoming > 0:
                station_state.incoming -= 1
            part.update_state(PartState.IDLE_AT_STATION, state.now, self.calendar)
            station_state.queue.enqueue(part.id)
            station_state.note_queue_length()
            self._try_start_operation(state, node_id)

    def _finish_part(self, state: SimulationState, part: Part):
        part.update_state(PartState.FINISHED, state.now, self.calendar)
        state.produced += 1
        state.cycle_times.append(part.lead_time)
        state.log_message(f"{format_sim_time(state.now)} 完成 {part.id} ({part.type_label}, 订单 {part.order_id})")

    # ============ 缓冲区推送 ============

    def _try_push_from_buffer(self, state: SimulationState, buffer_id: str):
        """
        把缓冲区队首零件推向下一道工序所在的工位

        队首零件无法推送时整个缓冲区停止推送（FIFO）
        """
        if not self.calendar.is_working_time(state.now):
            self._schedule_resume(state)
            return
        buffer_state = state.buffers[buffer_id]
        while len(buffer_state.queue) > 0:
            part = state.parts[buffer_state.queue.peek()]
            target = self._push_target(buffer_id, part)
            if target is None:
                return
            station, flow = target
            station_state = state.stations[station.id]
            limit = station.capacity + self.settings.admission_slack
            if len(station_state.queue) + station_state.incoming >= limit:
                return
            buffer_state.queue.dequeue_front()
            self._record_buffer(state, buffer_id)
            self._initiate_transport(state, part, flow)

    def _push_target(self, buffer_id: str, part: Part) -> Optional[Tuple[StationConfig, FlowConfig]]:
        operation = part.next_operation()
        if operation is None:
            return None
        for flow in self.flows_from[buffer_id]:
            station = self.stations.get(flow.to_node)
            if station is not None and operation.id in station.allowed_operations:
                return station, flow
        return None

    def _notify_upstream(self, state: SimulationState, station_id: str):
        """工位腾出位置后，通知上游缓冲区重新推送"""
        for flow in self.flows_to[station_id]:
            if flow.from_node in self.buffers:
                self._try_push_from_buffer(state, flow.from_node)

    # ============ 装配配套 ============

    def _try_start_assembly(self, state: SimulationState, station_id: str):
        """
        装配配套

        在输入缓冲区队首寻找路线已完成、尚未装配的父件，
        再为BOM中的每个子件在对应缓冲区按顺序认领一个 (代码, 尺寸) 完全匹配的子件，
        全部找到才出队并装配
        """
        if not self.calendar.is_working_time(state.now):
            self._schedule_resume(state)
            return
        station = self.stations[station_id]
        station_state = state.stations[station_id]
        if station_state.idle_slots <= 0:
            return
        if len(station_state.queue) > 0:
            self._try_start_operation(state, station_id)
            return

        inputs = [f.from_node for f in self.flows_to[station_id] if f.from_node in self.buffers]
        parent, parent_buffer = None, None
        for buffer_id in inputs:
            head = state.buffers[buffer_id].queue.peek()
            if head is None:
                continue
            candidate = state.parts[head]
            if candidate.is_parent and candidate.routing_exhausted and not candidate.assembled:
                parent, parent_buffer = candidate, buffer_id
                break
        if parent is None:
            return

        # 每个缓冲区已被认领的位置数（父件占用其所在缓冲区的队首）
        claimed = {parent_buffer: 1}
        matched: List[Tuple[str, Part]] = []
        for wanted in parent.bom:
            type_id = product_type_id(ProductFamily.FUNCTIONS, wanted.size, wanted.code)
            source = next((b for b in inputs if type_id in self.buffers[b].allowed_product_types), None)
            if source is None:
                return
            position = claimed.get(source, 0)
            child_id = state.buffers[source].queue.peek(position)
            if child_id is None:
                return
            child = state.parts[child_id]
            if child.kind != PartKind.CHILD or child.product_code != wanted.code or child.size_code != wanted.size:
                return
            claimed[source] = position + 1
            matched.append((source, child))

        children = []
        for source, child in matched:
            state.buffers[source].queue.remove(child.id)
            child.update_state(PartState.ASSEMBLED, state.now, self.calendar)
            child.parent_id = parent.id
            child.location = station_id
            parent.attached_children.append(child.id)
            children.append(child)
        state.buffers[parent_buffer].queue.remove(parent.id)
        for buffer_id in {parent_buffer, *(source for source, _ in matched)}:
            self._record_buffer(state, buffer_id)

        parent.assembled = True
        parent.location = station_id
        parent.update_state(PartState.IDLE_AT_STATION, state.now, self.calendar)
        parent.extend_routing(self._assembly_operations(parent, children))
        station_state.queue.enqueue(parent.id)
        station_state.note_queue_length()
        state.log_message(
            f"{format_sim_time(state.now)} 装配配套 {parent.id} + {len(children)} 个子件 @ {station.name or station_id}"
        )
        self._try_start_operation(state, station_id)

    def _assembly_operations(self, parent: Part, children: List[Part]) -> List[Operation]:
        """按装配顺序拼接 phase1 工序；顺序未命中时先所有子件再父件"""
        operations: List[Operation] = []
        for code in self.settings.assembly_sequence:
            if parent.product_code == code:
                operations.extend(self._phase_operations(parent, 1))
            child = next((c for c in children if c.product_code == code), None)
            if child is not None:
                operations.extend(self._phase_operations(child, 1))
        if not operations:
            for child in children:
                operations.extend(self._phase_operations(child, 1))
            operations.extend(self._phase_operations(parent, 1))
        return operations

    def _phase_operations(self, part: Part, phase: int) -> List[Operation]:
        key = routing_key(part.kind.family, part.size_code, part.product_code, phase)
        return list(self.routings.get(key, []))

    # ============ 工序加工 ============

    def _try_start_operation(self, state: SimulationState, station_id: str, preferred: Optional[str] = None):
        """
        在空闲加工位上启动排队零件的工序

        绑定工人路径的工位需要先从工人池获得操作工；被拒绝的零件停在队列中，
        等待资源池释放时唤醒
        """
        if not self.calendar.is_working_time(state.now):
            self._schedule_resume(state)
            return
        station = self.stations[station_id]
        station_state = state.stations[station_id]

        while station_state.idle_slots > 0 and len(station_state.queue) > 0:
            index = self._pick_queued_part(state, station_id, preferred)
            preferred = None
            part = state.parts[station_state.queue[index]]

            if station.kind.consumes_routing:
                operation = part.next_operation()
                if operation is None:
                    station_state.queue.remove_at(index)
                    self._route_onward(state, part, station_id)
                    self._notify_upstream(state, station_id)
                    continue
                nominal = operation.duration_hours or DEFAULT_OPERATION_HOURS
                operators = operation.operators_required or 1
            else:
                nominal = self._rule_time(station.kind, state, part)
                operators = 1

            worker_flow = self.worker_flow_for.get(station_id)
            if worker_flow is None:
                station_state.queue.remove_at(index)
                station_state.busy_slots += 1
                self._begin_processing(state, part, station_id, None, 0, nominal)
                self._notify_upstream(state, station_id)
                continue

            pool = state.worker_pools[worker_flow.from_pool]
            if not self._acquire(state, pool, part.id, operators):
                if operators > pool.capacity:
                    state.log_message(
                        f"工位 {station_id} 需要 {operators} 名工人，超过工人池 {pool.id} 的容量 {pool.capacity}",
                        logging.WARNING,
                    )
                if part.state != PartState.WAITING_FOR_WORKER:
                    part.update_state(PartState.WAITING_FOR_WORKER, state.now, self.calendar)
                    state.collector.record_station_state(
                        state.now, station_id, StationStatus.WAITING_FOR_WORKER, part=part
                    )
                return

            station_state.queue.remove_at(index)
            station_state.busy_slots += 1
            part.update_state(PartState.WAITING_FOR_WORKER_TRAVEL, state.now, self.calendar)
            travel = worker_flow.distance / pool.speed / SECONDS_PER_HOUR
            arrival = self.calendar.advance(state.now, travel)
            state.collector.record_worker_travel(pool.id, station_id, state.now, arrival)
            state.collector.record_station_state(
                state.now, station_id, StationStatus.WAITING_FOR_WORKER,
                part=part, end_time=arrival, slot=station_state.busy_slots - 1,
            )
            state.queue.push(arrival, WorkerArrivesAtStation(
                part_id=part.id,
                station_id=station_id,
                pool_id=pool.id,
                operators=operators,
                nominal=nominal,
            ))
            self._notify_upstream(state, station_id)

    def _pick_queued_part(self, state: SimulationState, station_id: str, preferred: Optional[str]) -> int:
        """选择要启动的零件：指定零件 > 已持有工人预留的零件 > 队首"""
        queue = state.stations[station_id].queue
        if preferred is not None and preferred in queue:
            return list(queue).index(preferred)
        worker_flow = self.worker_flow_for.get(station_id)
        if worker_flow is not None:
            for index, part_id in enumerate(queue):
                if (worker_flow.from_pool, part_id) in state.reserved_grants:
                    return index
        return 0

    def _rule_time(self, kind: StationKind, state: SimulationState, part: Part) -> float:
        """质检/包装工时：尺寸规则的基础时间 + 已装配子件的附加时间"""
        rules = self.settings.quality_rules if kind == StationKind.QUALITY else self.settings.packing_rules
        rule = rules.get(part.size_code)
        if rule is None:
            return DEFAULT_OPERATION_HOURS
        extra = sum(
            rule.child_times.get(state.parts[child_id].product_code, 0.0)
            for child_id in part.attached_children
        )
        return rule.base_time + extra

    def _acquire(self, state: SimulationState, pool: ResourcePool, requester_id: str, count: int) -> bool:
        """优先消费释放时已授予的预留，否则向资源池请求"""
        key = (pool.id, requester_id)
        if key in state.reserved_grants:
            state.reserved_grants.discard(key)
            return True
        return pool.request(requester_id, count)

    def _begin_processing(
        self,
        state: SimulationState,
        part: Part,
        station_id: str,
        pool_id: Optional[str],
        operators: int,
        nominal: float
    ):
        """开始加工：施加工时波动与随机故障，按日历计算完成时刻"""
        station = self.stations[station_id]
        station_state = state.stations[station_id]
        part.update_state(PartState.PROCESSING, state.now, self.calendar)
        if station_id not in part.visited_stations:
            part.visited_stations.append(station_id)

        duration = nominal
        if station.variance_pct > 0:
            duration *= 1 + state.rng.uniform(-1.0, 1.0) * station.variance_pct / 100

        repair = 0.0
        if station.failure_prob > 0 and state.rng.random() * 100 < station.failure_prob:
            repair = REPAIR_MIN_HOURS + state.rng.random() * REPAIR_SPREAD_HOURS
            station_state.breakdowns.append(Breakdown(start_time=state.now, duration=repair))
            state.log_message(
                f"! 故障 {station.name or station_id} @ {format_sim_time(state.now)}，维修 {repair:.2f}h",
                logging.WARNING,
            )
            state.collector.record_station_state(
                state.now, station_id, StationStatus.STOP, end_time=state.now + repair, reason="BREAKDOWN"
            )

        done = self.calendar.advance(state.now, duration + repair)
        state.collector.record_station_state(
            state.now, station_id, StationStatus.RUN,
            part=part,
            end_time=done,
            slot=station_state.busy_slots - 1,
            is_assembled=bool(part.attached_children),
            current_op=part.routing_cursor + 1,
            total_ops=len(part.routing),
        )
        state.queue.push(done, OperationComplete(
            part_id=part.id,
            station_id=station_id,
            pool_id=pool_id,
            operators=operators,
            duration=duration,
            repair=repair,
            started_at=state.now,
        ))

    def _on_worker_arrives(self, state: SimulationState, payload: WorkerArrivesAtStation):
        part = state.parts[payload.part_id]
        self._begin_processing(
            state, part, payload.station_id, payload.pool_id, payload.operators, payload.nominal
        )

    def _on_operation_complete(self, state: SimulationState, payload: OperationComplete):
        part = state.parts[payload.part_id]
        station = self.stations[payload.station_id]
        station_state = state.stations[payload.station_id]

        station_state.total_busy_time += payload.duration
        station_state.operations_completed += 1
        station_state.busy_slots = max(0, station_state.busy_slots - 1)
        state.collector.record_station_state(state.now, station.id, StationStatus.IDLE)

        if payload.pool_id:
            pool = state.worker_pools[payload.pool_id]
            state.collector.record_resource_usage(
                pool.id, "PROCESSING", part.id, payload.started_at, state.now, station_id=station.id
            )
            unblocked = pool.release(part.id, payload.operators, payload.duration + payload.repair)
            if unblocked is not None:
                self._resume_worker_waiter(state, pool, unblocked)

        if station.kind == StationKind.QUALITY:
            if state.rng.random() < station.failure_prob / 1000 + SCRAP_BASE_RATE:
                part.update_state(PartState.SCRAPPED, state.now, self.calendar)
                state.scrapped += 1
                state.log_message(
                    f"{format_sim_time(state.now)} 报废 {part.id} ({part.type_label}) @ {station.name or station.id}",
                    logging.INFO,
                )
                self._on_slot_freed(state, station.id)
                return

        if station.kind.consumes_routing:
            part.advance_routing()
            operation = part.next_operation()
            if operation is not None and operation.id in station.allowed_operations:
                # 同一工位继续下一道工序，占用的位置直接复用
                part.update_state(PartState.IDLE_AT_STATION, state.now, self.calendar)
                station_state.queue.enqueue_front(part.id)
                self._try_start_operation(state, station.id, preferred=part.id)
                return

        self._on_slot_freed(state, station.id)
        self._route_onward(state, part, station.id)

    def _resume_worker_waiter(self, state: SimulationState, pool: ResourcePool, requester_id: str):
        """被唤醒的零件已获授予，在其所在工位重新尝试启动"""
        key = (pool.id, requester_id)
        state.reserved_grants.add(key)
        waiter = state.parts.get(requester_id)
        if waiter is None or waiter.state != PartState.WAITING_FOR_WORKER or waiter.location not in self.stations:
            state.reserved_grants.discard(key)
            unblocked = pool.release(requester_id, pool.holding(requester_id))
            if unblocked is not None:
                self._resume_worker_waiter(state, pool, unblocked)
            return
        self._try_start_operation(state, waiter.location, preferred=waiter.id)

    def _on_slot_freed(self, state: SimulationState, station_id: str):
        self._try_start_operation(state, station_id)
        self._notify_upstream(state, station_id)
        if self.stations[station_id].kind == StationKind.ASSEMBLY:
            self._try_start_assembly(state, station_id)

    def _route_onward(self, state: SimulationState, part: Part, station_id: str):
        """交给出站物流路径；没有出站路径时零件完成"""
        flow = self._outbound_flow(part, station_id)
        if flow is None:
            self._finish_part(state, part)
            return
        self._initiate_transport(state, part, flow)

    def _outbound_flow(self, part: Part, station_id: str) -> Optional[FlowConfig]:
        """优先选择接收该产品类型的缓冲区，否则取第一条出站路径"""
        flows = self.flows_from[station_id]
        if not flows:
            return None
        type_id = product_type_id(part.kind.family, part.size_code, part.product_code)
        for flow in flows:
            buffer = self.buffers.get(flow.to_node)
            if buffer is not None and (not buffer.allowed_product_types or type_id in buffer.allowed_product_types):
                return flow
        return flows[0]

    # ============ 搬运 ============

    def _initiate_transport(self, state: SimulationState, part: Part, flow: FlowConfig):
        if flow.to_node in state.stations:
            state.stations[flow.to_node].incoming += 1

        tool_pool_id = self.tool_pool_for_flow.get(flow.id)
        if tool_pool_id is None:
            part.update_state(PartState.IN_TRANSPORT, state.now, self.calendar)
            arrival = self.calendar.advance(
                state.now, flow.distance / DEFAULT_TRANSPORT_SPEED / SECONDS_PER_HOUR
            )
            state.collector.record_transport(part, flow.from_node, flow.to_node, state.now, arrival)
            state.queue.push(arrival, PartArrivesAtNode(part_id=part.id, node_id=flow.to_node))
            return
        self._dispatch_tool_transport(state, part, flow, tool_pool_id)

    def _dispatch_tool_transport(self, state: SimulationState, part: Part, flow: FlowConfig, pool_id: str):
        """需要工具的搬运：获得工具后出发，否则挂起等待工具释放"""
        pool = state.tool_pools[pool_id]
        if not self._acquire(state, pool, part.id, TOOLS_PER_TRANSPORT):
            part.update_state(PartState.WAITING_FOR_TOOL, state.now, self.calendar)
            state.pending_transports[part.id] = PendingTransport(flow.from_node, flow.to_node, flow.id)
            if flow.from_node in self.stations:
                state.collector.record_station_state(
                    state.now, flow.from_node, StationStatus.BLOCKED, part=part
                )
            return

        part.update_state(PartState.IN_TRANSPORT, state.now, self.calendar)
        arrival = self.calendar.advance(state.now, flow.distance / pool.speed / SECONDS_PER_HOUR)
        state.queue.push(arrival, TransportComplete(
            part_id=part.id,
            from_node=flow.from_node,
            to_node=flow.to_node,
            pool_id=pool.id,
            tools=TOOLS_PER_TRANSPORT,
            started_at=state.now,
        ))

    def _on_transport_complete(self, state: SimulationState, payload: TransportComplete):
        part = state.parts[payload.part_id]
        state.collector.record_transport(part, payload.from_node, payload.to_node, payload.started_at, state.now)
        state.queue.push(state.now, PartArrivesAtNode(part_id=part.id, node_id=payload.to_node))
        state.collector.record_resource_usage(
            payload.pool_id, "TRANSPORT", part.id, payload.started_at, state.now
        )
        pool = state.tool_pools[payload.pool_id]
        unblocked = pool.release(part.id, payload.tools, state.now - payload.started_at)
        if unblocked is not None:
            self._resume_tool_waiter(state, pool, unblocked)

    def _resume_tool_waiter(self, state: SimulationState, pool: ResourcePool, requester_id: str):
        """被唤醒的零件继续自己挂起的搬运"""
        key = (pool.id, requester_id)
        state.reserved_grants.add(key)
        pending = state.pending_transports.pop(requester_id, None)
        waiter = state.parts.get(requester_id)
        if pending is None or waiter is None or waiter.state != PartState.WAITING_FOR_TOOL:
            state.reserved_grants.discard(key)
            unblocked = pool.release(requester_id, pool.holding(requester_id))
            if unblocked is not None:
                self._resume_tool_waiter(state, pool, unblocked)
            return
        self._dispatch_tool_transport(state, waiter, self.flows_by_id[pending.flow_id], pool.id)

    # ============ 班次恢复 ============

    def _schedule_resume(self, state: SimulationState):
        """在下一个工作时刻调度一次产线恢复（同一时刻只调度一次）"""
        if self.calendar.is_working_time(state.now):
            return
        resume_at = self.calendar.next_working_instant(state.now)
        if resume_at in state.resume_times:
            return
        state.resume_times.add(resume_at)
        state.queue.push(resume_at, ShiftResume())

    def _on_shift_resume(self, state: SimulationState, payload: ShiftResume):
        state.resume_times.discard(state.now)
        for station_id, station in self.stations.items():
            if station.kind == StationKind.ASSEMBLY:
                self._try_start_assembly(state, station_id)
            else:
                self._try_start_operation(state, station_id)
        for buffer_id, buffer in self.buffers.items():
            if not buffer.is_exit:
                self._try_push_from_buffer(state, buffer_id)

    # ============ 回放记录 ============

    def _record_buffer(self, state: SimulationState, buffer_id: str):
        queue = state.buffers[buffer_id].queue
        state.collector.record_buffer_state(
            state.now, buffer_id, (state.parts[part_id] for part_id in queue)
        )

    # ============ 结果汇总 ============

    def _finalize(self, state: SimulationState, report: SimulationReport):
        """汇总报告（致命错误时同样汇总已累计的部分统计）"""
        duration = state.now
        working_hours = self.calendar.paid_hours(duration)
        finished = [p for p in state.parts.values() if p.state == PartState.FINISHED]

        report.duration = duration
        report.working_hours_total = working_hours
        report.produced = state.produced
        report.scrapped = state.scrapped
        report.steps = state.steps
        report.avg_lead_time, report.avg_flow_efficiency, report.lead_time_breakdown = summarize_lead_times(finished)

        report.total_material_cost = sum(
            p.material_cost for p in state.parts.values() if self._material_consumed(state, p)
        )

        for pool, resource_type in (
            [(p, "WORKER") for p in state.worker_pools.values()]
            + [(p, "TOOL") for p in state.tool_pools.values()]
        ):
            paid = working_hours * pool.capacity
            report.resource_stats.append(ResourceStats(
                id=pool.id,
                name=pool.name,
                resource_type=resource_type,
                capacity=pool.capacity,
                hours_worked=pool.busy_hours,
                paid_hours=paid,
                attendance_cost=paid * pool.cost_per_hour,
            ))
        report.total_labor_cost = sum(r.attendance_cost for r in report.resource_stats)

        energy = 0.0
        for station in self.config.stations:
            station_state = state.stations[station.id]
            capacity_time = working_hours * station.capacity
            downtime = sum(b.duration for b in station_state.breakdowns)
            utilization = percent(station_state.total_busy_time, capacity_time)
            starvation = percent(station_state.total_starved_time, capacity_time)
            breakdown_pct = percent(downtime, capacity_time)
            energy += station_state.total_busy_time * self.settings.energy_cost_per_hour
            report.station_stats.append(StationStats(
                id=station.id,
                name=station.name or station.id,
                kind=station.kind.value,
                capacity=station.capacity,
                busy_time=station_state.total_busy_time,
                starved_time=station_state.total_starved_time,
                downtime=downtime,
                utilization=utilization,
                starvation=starvation,
                blocked=max(0.0, 100 - utilization - starvation - breakdown_pct) if capacity_time > 0 else 0.0,
                breakdown_pct=breakdown_pct,
                failures=len(station_state.breakdowns),
                max_queue=station_state.max_queue,
                operations_completed=station_state.operations_completed,
            ))
        report.total_energy_cost = energy

        for buffer in self.config.buffers:
            report.buffer_stats.append(BufferStats(
                id=buffer.id,
                name=buffer.name or buffer.id,
                capacity=buffer.capacity,
                max_queue=state.buffers[buffer.id].max_queue,
            ))

        report.order_reports = self._build_order_reports(state)
        report.product_reports = self._build_product_reports(state)
        report.otif = calculate_otif(report.order_reports)

        total_cost = report.total_labor_cost + report.total_energy_cost + report.total_material_cost
        report.cpu = total_cost / len(finished) if finished else 0.0
        report.actual_takt = working_hours / state.produced if state.produced else 0.0
        report.target_takt = self.settings.target_takt_minutes / 60

        names = {s.id: s.name or s.id for s in self.config.stations}
        report.dynamic_bottlenecks = rank_bottlenecks((s.station_id for s in state.bottleneck_snapshots), names)
        report.wip_history = list(state.wip_history)
        report.replay_events = list(state.collector.events)

        if not report.failed:
            state.log_message(f"仿真结束。完成 {state.produced} 件，报废 {state.scrapped} 件，单位成本 {report.cpu:.2f}", logging.INFO)

    def _material_consumed(self, state: SimulationState, part: Part) -> bool:
        """材料已消耗：完成/报废，或已装配到一个已完成/报废的父件上"""
        if part.state in (PartState.FINISHED, PartState.SCRAPPED):
            return True
        if part.state == PartState.ASSEMBLED:
            parent = state.parts.get(part.parent_id)
            return parent is not None and self._material_consumed(state, parent)
        return False

    def _build_order_reports(self, state: SimulationState) -> List[OrderReport]:
        reports: Dict[str, OrderReport] = {}
        for part in state.parts.values():
            report = reports.get(part.order_id)
            if report is None:
                report = OrderReport(
                    id=part.order_id,
                    code=state.order_sections.get(part.order_id, ""),
                    size=part.size_code,
                    due_date=part.due_date,
                    start_time=part.created_at,
                    end_time=part.created_at,
                )
                reports[part.order_id] = report
            report.start_time = min(report.start_time, part.created_at)
            if part.finished_at is not None:
                report.end_time = max(report.end_time, part.finished_at)
            elif not part.is_terminal:
                report.end_time = max(report.end_time, state.now)
            report.total_parts += 1
            if part.state in (PartState.FINISHED, PartState.ASSEMBLED):
                report.finished_parts += 1
            if part.state == PartState.SCRAPPED:
                report.scrapped_parts += 1

            if part.state in _PROCESSING_STATES:
                report.components_status["processing"].append(part.product_code)
            elif part.state in _READY_STATES:
                report.components_status["ready"].append(part.product_code)
            else:
                report.components_status["todo"].append(part.product_code)

        for report in reports.values():
            complete = report.finished_parts == report.total_parts
            if report.due_date is None:
                report.status = OrderStatus.NO_DUE_DATE
                report.on_time = False
            elif report.scrapped_parts > 0:
                report.status = OrderStatus.SCRAPPED
                report.on_time = False
            elif report.end_time > report.due_date:
                report.status = OrderStatus.LATE
                report.on_time = False
            elif not complete:
                report.status = OrderStatus.IN_PROGRESS
                report.on_time = False
            else:
                report.status = OrderStatus.OK
                report.on_time = True
        return list(reports.values())

    def _build_product_reports(self, state: SimulationState) -> List[ProductReport]:
        grouped: Dict[Tuple[PartKind, str], List[Part]] = defaultdict(list)
        for part in state.parts.values():
            if part.is_terminal:
                grouped[(part.kind, part.product_code)].append(part)

        reports = []
        for (kind, code), parts in grouped.items():
            reports.append(ProductReport(
                kind=kind.value,
                code=code,
                count=len(parts),
                scraps=sum(1 for p in parts if p.state == PartState.SCRAPPED),
                processing=describe(p.buckets.processing for p in parts),
                wait=describe(p.buckets.wait for p in parts),
                other=describe(p.buckets.transport + p.buckets.blocked for p in parts),
            ))
        return reports


def run_simulation(
    config: LineConfig,
    catalog: Optional[ProductCatalog] = None,
    orders: Optional[List[OrderRow]] = None,
    settings: Optional[RunSettings] = None
) -> Tuple[List[str], SimulationReport]:
    """
    运行一次仿真

    Returns:
        (运行日志, 仿真报告)
    """
    return SimulationEngine(config, catalog, orders, settings).run()
