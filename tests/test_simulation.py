"""
仿真引擎集成测试
测试SimulationEngine的完整运行

测试内容:
- 单工位流转与日历空档
- 工人池/工具池竞争与唤醒
- 装配配套
- 零件时间桶守恒
- 故障与工时
- 致命错误分类（配置/运行/调度）
- 示例产线与确定性
"""

import pytest

from prodsim.api.simulation import load_demo_request
from prodsim.core.simulation_engine import SimulationEngine, run_simulation
from prodsim.models.config_model import (
    BufferConfig,
    FlowConfig,
    LineConfig,
    Operation,
    OrderRow,
    PoolConfig,
    ProductCatalog,
    RunSettings,
    ShiftConfig,
    StationConfig,
    ToolPoolConfig,
    WorkerFlowConfig,
)
from prodsim.models.enums import (
    ErrorKind,
    OrderStatus,
    PartState,
    ReplayEventType,
    SimulationStatus,
    StationKind,
    StationStatus,
)

START_DATE = "18-11-2025"


def always_open() -> RunSettings:
    """全天候班次，固定随机种子"""
    return RunSettings(
        start_date=START_DATE,
        shifts=[ShiftConfig(id="1", days_per_week=7, start_hour=0, end_hour=24)],
        random_seed=7,
    )


def order(sections: str = "M1", order_id: str = "O1", due_date=None) -> OrderRow:
    return OrderRow(order_id=order_id, sections=sections, size="S", order_date=START_DATE, due_date=due_date)


def run_engine(config, orders, settings, catalog=None):
    """运行仿真，返回 (引擎, 报告)；零件通过 engine.state 检查"""
    engine = SimulationEngine(config, catalog or ProductCatalog(), orders, settings)
    _, report = engine.run()
    return engine, report


def finished_parts(engine: SimulationEngine):
    parts = [p for p in engine.state.parts.values() if p.state == PartState.FINISHED]
    return sorted(parts, key=lambda p: (p.finished_at, p.id))


def assert_buckets_cover_lead_time(engine: SimulationEngine):
    """每个完成零件的四个时间桶之和等于其交付周期"""
    for part in finished_parts(engine):
        assert part.buckets.total == pytest.approx(part.finished_at - part.created_at), part.id


def single_station_line(operations, capacity: int = 1, **extra) -> LineConfig:
    """
    入口缓冲区 -> 工位 ST -> 出口缓冲区

    extra 中的 station_* 参数传给工位配置，其余传给 LineConfig
    """
    station_kwargs = {k[len("station_"):]: v for k, v in extra.items() if k.startswith("station_")}
    line_kwargs = {k: v for k, v in extra.items() if not k.startswith("station_")}
    exit_distance = line_kwargs.pop("exit_distance", 0)
    return LineConfig(
        stations=[StationConfig(
            id="ST",
            capacity=capacity,
            allowed_operations=[op.id for op in operations],
            **station_kwargs
        )],
        buffers=[
            BufferConfig(id="B_IN", is_entry=True, allowed_product_types=["casings_S_M1"]),
            BufferConfig(id="B_OUT", is_exit=True),
        ],
        flows=[
            FlowConfig(id="F1", from_node="B_IN", to_node="ST"),
            FlowConfig(id="F2", from_node="ST", to_node="B_OUT", distance=exit_distance),
        ],
        routings={"casings_S_M1_phase0": list(operations)},
        **line_kwargs
    )


class TestSimulationBasic:
    """基础流转测试"""

    def test_single_part(self):
        """测试单个零件经过单工位完成"""
        config = single_station_line([Operation(id="op1", duration_hours=2.0)])
        log, report = run_simulation(config, ProductCatalog(), [order()], always_open())

        assert report.status == SimulationStatus.COMPLETED
        assert report.produced == 1
        assert report.scrapped == 0
        assert report.duration == pytest.approx(2.0)
        assert report.avg_lead_time == pytest.approx(2.0)
        assert report.avg_flow_efficiency == pytest.approx(100.0)
        assert report.get_station_stat("ST").operations_completed == 1
        assert any("仿真结束" in line for line in log)

    def test_calendar_gap_in_lead_time(self):
        """测试同一工位连续两道工序跨越非工作时间"""
        config = single_station_line([
            Operation(id="op1", duration_hours=15.0),
            Operation(id="op2", duration_hours=2.0),
        ])
        settings = RunSettings(
            start_date=START_DATE,
            shifts=[ShiftConfig(id="1", days_per_week=7, start_hour=0, end_hour=16)],
        )
        _, report = run_simulation(config, ProductCatalog(), [order()], settings)

        assert report.produced == 1
        assert report.duration == pytest.approx(25.0)
        breakdown = report.lead_time_breakdown
        assert breakdown.processing == pytest.approx(17.0)
        assert breakdown.wait == pytest.approx(8.0)
        assert breakdown.total == pytest.approx(report.avg_lead_time)

    def test_two_steps_with_worker(self):
        """测试单个工人完成同一工位的两道工序，无等待"""
        config = single_station_line(
            [
                Operation(id="op1", duration_hours=1.0, operators_required=1),
                Operation(id="op2", duration_hours=1.0, operators_required=1),
            ],
            worker_pools=[PoolConfig(id="P1", capacity=1)],
            worker_flows=[WorkerFlowConfig(id="W1", from_pool="P1", to_station="ST")],
        )
        engine, report = run_engine(config, [order()], always_open())

        assert report.produced == 1
        part = finished_parts(engine)[0]
        assert part.buckets.processing == pytest.approx(2.0)
        assert part.buckets.wait == pytest.approx(0.0)
        assert part.buckets.transport == pytest.approx(0.0)
        assert part.finished_at - part.created_at == pytest.approx(2.0)

    def test_starvation_excludes_closed_hours(self):
        """测试饥饿时间只统计工作时间"""
        config = single_station_line(
            [
                Operation(id="op1", duration_hours=15.0),
                Operation(id="op2", duration_hours=2.0),
            ],
            capacity=2,
        )
        settings = RunSettings(
            start_date=START_DATE,
            shifts=[ShiftConfig(id="1", days_per_week=7, start_hour=0, end_hour=16)],
        )
        _, report = run_simulation(config, ProductCatalog(), [order()], settings)

        # 空闲位置 [0,16) + [24,25)，夜间8小时不计
        stat = report.get_station_stat("ST")
        assert stat.starved_time == pytest.approx(17.0)
        assert stat.starvation == pytest.approx(50.0)
        assert stat.utilization + stat.starvation <= 100.0 + 1e-9

    def test_operation_time_from_catalog(self):
        """测试工艺路线缺少工时时从产品库补全"""
        catalog = ProductCatalog(casings={"S": {"M1": [{"id": "op1", "time_hours": 3.0}]}})
        config = single_station_line([Operation(id="op1")])
        _, report = run_simulation(config, catalog, [order()], always_open())
        assert report.duration == pytest.approx(3.0)

    def test_default_operation_time(self):
        config = single_station_line([Operation(id="op1")])
        _, report = run_simulation(config, ProductCatalog(), [order()], always_open())
        assert report.duration == pytest.approx(0.1)

    def test_empty_backlog(self):
        """测试没有订单"""
        config = single_station_line([Operation(id="op1", duration_hours=1.0)])
        log, report = run_simulation(config, ProductCatalog(), [], always_open())
        assert report.status == SimulationStatus.COMPLETED
        assert report.produced == 0
        assert report.otif == 100.0
        assert report.cpu == 0.0

    def test_malformed_order_skipped(self):
        """测试格式错误的订单被跳过，其余订单正常运行"""
        config = single_station_line([Operation(id="op1", duration_hours=1.0)])
        orders = [order("AB-M1", order_id="BAD"), order(order_id="GOOD"), OrderRow()]
        log, report = run_simulation(config, ProductCatalog(), orders, always_open())

        assert report.status == SimulationStatus.COMPLETED
        assert report.produced == 1
        assert any("BAD" in line and "格式错误" in line for line in log)


class TestResourceContention:
    """资源竞争测试"""

    def test_worker_pool_handoff(self):
        """测试工人释放后唤醒排队零件"""
        config = single_station_line(
            [Operation(id="op1", duration_hours=1.0, operators_required=1)],
            capacity=2,
            worker_pools=[PoolConfig(id="P1", capacity=1, cost_per_hour=10)],
            worker_flows=[WorkerFlowConfig(id="W1", from_pool="P1", to_station="ST")],
        )
        orders = [order(order_id="O1"), order(order_id="O2")]
        _, report = run_simulation(config, ProductCatalog(), orders, always_open())

        assert report.produced == 2
        assert report.duration == pytest.approx(2.0)

        worker = report.resource_stats[0]
        assert worker.resource_type == "WORKER"
        assert worker.hours_worked == pytest.approx(2.0)
        assert worker.paid_hours == 2
        assert worker.attendance_cost == pytest.approx(20.0)
        assert report.total_labor_cost == pytest.approx(20.0)

        waiting = [
            e for e in report.replay_events
            if e.event_type == ReplayEventType.STATION_STATE and e.status == StationStatus.WAITING_FOR_WORKER.value
        ]
        assert waiting

    def test_second_part_waits_for_first(self):
        """测试第二个零件的等待时间等于第一个零件的加工时间"""
        config = single_station_line(
            [Operation(id="op1", duration_hours=1.0, operators_required=1)],
            capacity=2,
            worker_pools=[PoolConfig(id="P1", capacity=1)],
            worker_flows=[WorkerFlowConfig(id="W1", from_pool="P1", to_station="ST")],
        )
        engine, report = run_engine(config, [order(order_id="O1"), order(order_id="O2")], always_open())

        first, second = finished_parts(engine)
        assert first.buckets.wait == pytest.approx(0.0)
        assert second.buckets.processing == pytest.approx(1.0)
        assert second.buckets.wait == pytest.approx(first.buckets.processing)
        assert second.finished_at == pytest.approx(2.0)

    def test_operators_over_capacity(self):
        """测试所需人数超过工人池容量时零件永远等待"""
        config = single_station_line(
            [Operation(id="op1", duration_hours=1.0, operators_required=3)],
            worker_pools=[PoolConfig(id="P1", capacity=2)],
            worker_flows=[WorkerFlowConfig(id="W1", from_pool="P1", to_station="ST")],
        )
        log, report = run_simulation(config, ProductCatalog(), [order()], always_open())
        assert report.status == SimulationStatus.COMPLETED
        assert report.produced == 0
        assert any("超过工人池" in line for line in log)

    def test_worker_travel_time(self):
        """测试工人行走时间（距离/速度）计入交付周期"""
        config = single_station_line(
            [Operation(id="op1", duration_hours=1.0)],
            worker_pools=[PoolConfig(id="P1", capacity=1, speed=1.0)],
            worker_flows=[WorkerFlowConfig(id="W1", from_pool="P1", to_station="ST", distance=360)],
        )
        _, report = run_simulation(config, ProductCatalog(), [order()], always_open())
        assert report.duration == pytest.approx(1.1)
        assert report.lead_time_breakdown.transport == pytest.approx(0.1)

    def test_tool_pool_handoff(self):
        """测试工具释放后唤醒等待搬运的零件"""
        config = single_station_line(
            [Operation(id="op1", duration_hours=1.0)],
            capacity=2,
            exit_distance=360,
            tool_pools=[ToolPoolConfig(id="T1", capacity=1, speed=1.0, assigned_flows=["F2"])],
        )
        orders = [order(order_id="O1"), order(order_id="O2")]
        _, report = run_simulation(config, ProductCatalog(), orders, always_open())

        assert report.produced == 2
        assert report.duration == pytest.approx(1.2)

        tool = report.resource_stats[0]
        assert tool.resource_type == "TOOL"
        assert tool.hours_worked == pytest.approx(0.2)

        blocked = [
            e for e in report.replay_events
            if e.event_type == ReplayEventType.STATION_STATE and e.status == StationStatus.BLOCKED.value
        ]
        assert len(blocked) == 1


class TestAssembly:
    """装配配套测试"""

    def create_assembly_line(self) -> LineConfig:
        return LineConfig(
            stations=[
                StationConfig(id="SUB", allowed_operations=["C1", "F1"]),
                StationConfig(id="ASM", kind=StationKind.ASSEMBLY, allowed_operations=["A1", "A2"]),
            ],
            buffers=[
                BufferConfig(id="B_IN", is_entry=True, allowed_product_types=["casings_S_M1", "functions_S_A"]),
                BufferConfig(id="B_P", allowed_product_types=["casings_S_M1"]),
                BufferConfig(id="B_C", allowed_product_types=["functions_S_A"]),
                BufferConfig(id="B_OUT", is_exit=True),
            ],
            flows=[
                FlowConfig(id="F1", from_node="B_IN", to_node="SUB"),
                FlowConfig(id="F2", from_node="SUB", to_node="B_P"),
                FlowConfig(id="F3", from_node="SUB", to_node="B_C"),
                FlowConfig(id="F4", from_node="B_P", to_node="ASM"),
                FlowConfig(id="F5", from_node="B_C", to_node="ASM"),
                FlowConfig(id="F6", from_node="ASM", to_node="B_OUT"),
            ],
            routings={
                "casings_S_M1_phase0": [Operation(id="C1", duration_hours=1.0)],
                "casings_S_M1_phase1": [Operation(id="A2", duration_hours=0.2)],
                "functions_S_A_phase0": [Operation(id="F1", duration_hours=0.5)],
                "functions_S_A_phase1": [Operation(id="A1", duration_hours=0.3)],
            },
        )

    def test_parent_and_child_assembled(self):
        """测试父件与子件配套后完成装配工序"""
        orders = [order("M1-A", due_date="25-11-2025")]
        _, report = run_simulation(self.create_assembly_line(), ProductCatalog(), orders, always_open())

        assert report.status == SimulationStatus.COMPLETED
        assert report.produced == 1
        assert report.duration == pytest.approx(2.0)
        assert report.get_station_stat("ASM").operations_completed == 2
        assert report.get_station_stat("ASM").busy_time == pytest.approx(0.5)

        order_report = report.get_order_report("O1")
        assert order_report.total_parts == 2
        assert order_report.finished_parts == 2
        assert order_report.status == OrderStatus.OK
        assert order_report.on_time
        assert report.otif == pytest.approx(100.0)

        # 材料: 父件100 + 已装配子件20；能耗: 忙碌2小时 × 0.5
        assert report.total_material_cost == pytest.approx(120.0)
        assert report.total_energy_cost == pytest.approx(1.0)
        assert report.cpu == pytest.approx(121.0)

        kinds = {(p.kind, p.code): p.count for p in report.product_reports}
        assert kinds == {("PARENT", "M1"): 1, ("CHILD", "A"): 1}

    def test_missing_child_blocks_assembly(self):
        """测试子件未到齐时不装配（全有或全无）"""
        config = self.create_assembly_line()
        config.buffers[0].allowed_product_types = ["casings_S_M1"]
        engine, report = run_engine(config, [order("M1-A")], always_open())

        assert report.produced == 0
        assert report.get_station_stat("ASM").operations_completed == 0
        assert report.get_order_report("O1").status == OrderStatus.NO_DUE_DATE

        parents = [p for p in engine.state.parts.values() if p.is_parent]
        assert len(parents) == 1
        assert parents[0].id in engine.state.buffers["B_P"].queue
        assert parents[0].routing_exhausted
        assert not parents[0].assembled
        assert not any(p.state == PartState.ASSEMBLED for p in engine.state.parts.values())

    def test_partial_kit_left_untouched(self):
        """测试只到齐部分子件时父件与已到子件都留在原缓冲区"""
        config = self.create_assembly_line()
        engine, report = run_engine(config, [order("M1-AB")], always_open())

        assert report.produced == 0
        assert report.get_station_stat("ASM").operations_completed == 0

        state = engine.state
        parent = next(p for p in state.parts.values() if p.is_parent)
        child = next(p for p in state.parts.values() if not p.is_parent)
        assert parent.location == "B_P"
        assert parent.id in state.buffers["B_P"].queue
        assert parent.state == PartState.IDLE_IN_BUFFER
        assert parent.attached_children == []
        assert child.location == "B_C"
        assert child.id in state.buffers["B_C"].queue
        assert child.parent_id is None
        assert not any(p.state == PartState.ASSEMBLED for p in state.parts.values())


class TestPartLifecycle:
    """零件时间桶守恒测试"""

    def test_demo_line(self):
        """测试示例产线（工人/工具/故障/班次）"""
        request = load_demo_request()
        engine, report = run_engine(request.config, request.orders, request.settings, request.catalog)
        assert report.status == SimulationStatus.COMPLETED
        assert finished_parts(engine)
        assert_buckets_cover_lead_time(engine)

    def test_tool_contention(self):
        config = single_station_line(
            [Operation(id="op1", duration_hours=1.0)],
            capacity=2,
            exit_distance=360,
            tool_pools=[ToolPoolConfig(id="T1", capacity=1, speed=1.0, assigned_flows=["F2"])],
        )
        orders = [order(order_id=f"O{i}") for i in range(4)]
        engine, _ = run_engine(config, orders, always_open())
        assert len(finished_parts(engine)) == 4
        assert_buckets_cover_lead_time(engine)

    def test_breakdowns_across_shifts(self):
        """测试故障维修与夜间停工叠加"""
        config = single_station_line(
            [Operation(id="op1", duration_hours=3.0, operators_required=1)],
            capacity=2,
            station_failure_prob=50,
            station_variance_pct=20,
            worker_pools=[PoolConfig(id="P1", capacity=1)],
            worker_flows=[WorkerFlowConfig(id="W1", from_pool="P1", to_station="ST", distance=100)],
        )
        settings = RunSettings(
            start_date=START_DATE,
            shifts=[ShiftConfig(id="1", days_per_week=7, start_hour=6, end_hour=14)],
            random_seed=3,
        )
        orders = [order(order_id=f"O{i}") for i in range(6)]
        engine, _ = run_engine(config, orders, settings)
        assert len(finished_parts(engine)) == 6
        assert_buckets_cover_lead_time(engine)



class TestQualityScrap:
    """质检报废测试"""

    def test_scrapped_parts_leave_the_line(self):
        """测试质检工位按概率报废，报废零件不再流转"""
        config = LineConfig(
            stations=[
                StationConfig(id="ST", allowed_operations=["op1"], capacity=2),
                StationConfig(id="QC", kind=StationKind.QUALITY, failure_prob=100),
            ],
            buffers=[
                BufferConfig(id="B_IN", is_entry=True, allowed_product_types=["casings_S_M1"]),
                BufferConfig(id="B_OUT", is_exit=True),
            ],
            flows=[
                FlowConfig(id="F1", from_node="B_IN", to_node="ST"),
                FlowConfig(id="F2", from_node="ST", to_node="QC"),
                FlowConfig(id="F3", from_node="QC", to_node="B_OUT"),
            ],
            routings={"casings_S_M1_phase0": [Operation(id="op1", duration_hours=0.2)]},
        )
        orders = [order(order_id=f"O{i}", due_date="30-12-2025") for i in range(60)]
        _, report = run_simulation(config, ProductCatalog(), orders, always_open())

        assert report.status == SimulationStatus.COMPLETED
        assert report.scrapped > 0
        assert report.produced + report.scrapped == 60
        scrapped_orders = [o for o in report.order_reports if o.status == OrderStatus.SCRAPPED]
        assert len(scrapped_orders) == report.scrapped
        assert report.product_reports[0].scraps == report.scrapped


class TestBreakdowns:
    """故障测试"""

    def test_breakdown_adds_repair(self):
        """测试故障概率100%时每道工序都附加1-3小时维修"""
        config = single_station_line([Operation(id="op1", duration_hours=1.0)], station_failure_prob=100)
        log, report = run_simulation(config, ProductCatalog(), [order()], always_open())

        stat = report.get_station_stat("ST")
        assert stat.failures == 1
        assert 1.0 <= stat.downtime <= 3.0
        assert stat.busy_time == pytest.approx(1.0)
        assert report.duration == pytest.approx(1.0 + stat.downtime)
        assert any(
            e.status == StationStatus.STOP.value for e in report.replay_events
            if e.event_type == ReplayEventType.STATION_STATE
        )
        assert any("故障" in line for line in log)


class TestFatalErrors:
    """致命错误测试"""

    def test_missing_routing(self):
        """测试缺少工艺路线时运行前中止"""
        config = single_station_line([Operation(id="op1", duration_hours=1.0)])
        log, report = run_simulation(config, ProductCatalog(), [order("M2")], always_open())

        assert report.status == SimulationStatus.FAILED
        assert report.error_kind == ErrorKind.CONFIGURATION
        assert report.steps == 0
        assert report.produced == 0
        assert any("casings_S_M2_phase0" in e for e in report.validation_errors)
        assert any("casings_S_M2_phase0" in line for line in log)

    def test_error_list_truncated(self):
        """测试超过10个错误时截断并报告剩余数量"""
        config = single_station_line([Operation(id="op1", duration_hours=1.0)])
        orders = [order(f"M{i + 2}", order_id=f"O{i}") for i in range(12)]
        log, report = run_simulation(config, ProductCatalog(), orders, always_open())

        assert len(report.validation_errors) == 10
        assert report.omitted_error_count == 2
        assert any("另外 2 个错误" in line for line in log)

    def test_unknown_flow_node(self):
        config = single_station_line([Operation(id="op1", duration_hours=1.0)])
        config.flows.append(FlowConfig(id="F9", from_node="ST", to_node="GHOST"))
        _, report = run_simulation(config, ProductCatalog(), [order()], always_open())
        assert report.error_kind == ErrorKind.CONFIGURATION

    def test_no_active_shift(self):
        """测试没有有效班次"""
        config = single_station_line([Operation(id="op1", duration_hours=1.0)])
        settings = RunSettings(shifts=[ShiftConfig(id="1", active=False)])
        _, report = run_simulation(config, ProductCatalog(), [order()], settings)

        assert report.status == SimulationStatus.FAILED
        assert report.error_kind == ErrorKind.OPERATIONAL

    def test_step_ceiling(self):
        """测试事件步数超限"""
        request = load_demo_request()
        settings = request.settings.model_copy(update={"max_steps": 5})
        _, report = run_simulation(request.config, request.catalog, request.orders, settings)

        assert report.status == SimulationStatus.FAILED
        assert report.error_kind == ErrorKind.SCHEDULING
        assert "步数" in report.error
        assert report.steps == 6


class TestDemoLine:
    """示例产线测试"""

    def test_demo_completes(self):
        """测试示例产线全部父件完成或报废"""
        request = load_demo_request()
        _, report = run_simulation(request.config, request.catalog, request.orders, request.settings)

        assert report.status == SimulationStatus.COMPLETED
        assert report.produced + report.scrapped == 5
        assert report.produced > 0
        assert 0.0 <= report.otif <= 100.0
        assert report.get_order_report("ZL-004").status == OrderStatus.NO_DUE_DATE
        assert report.working_hours_total > 0
        assert report.cpu > 0

        types = {e.event_type for e in report.replay_events}
        assert types == set(ReplayEventType)

        data = report.to_dict()
        assert data["replay_events_count"] == len(report.replay_events)
        assert "production" in report.get_kpi_summary()

    def test_deterministic_with_seed(self):
        """测试固定随机种子时结果可复现"""
        request = load_demo_request()
        results = []
        for _ in range(2):
            engine = SimulationEngine(request.config, request.catalog, request.orders, request.settings)
            _, report = engine.run()
            results.append((
                report.produced,
                report.scrapped,
                report.duration,
                report.steps,
                len(report.replay_events),
                [s.busy_time for s in report.station_stats],
            ))
        assert results[0] == results[1]
