"""
零件模型单元测试

测试内容:
- 状态迁移的时间桶累计
- 日历约束状态中的非工作时间计入等待
- 工艺路线游标
"""

import pytest

from prodsim.core.calendar import ShiftCalendar
from prodsim.models.config_model import Operation, ShiftConfig
from prodsim.models.enums import PartKind, PartState
from prodsim.models.part_model import Part


def make_part(**kwargs) -> Part:
    defaults = dict(id="part_1", order_id="O1", kind=PartKind.PARENT, product_code="M1", size_code="S")
    defaults.update(kwargs)
    return Part(**defaults)


class TestTimeBuckets:
    """时间桶测试"""

    def test_elapsed_goes_to_previous_state(self):
        """测试经过时间计入迁移前状态对应的时间桶"""
        part = make_part()
        part.update_state(PartState.IN_TRANSPORT, 1.0)
        part.update_state(PartState.PROCESSING, 1.5)
        part.update_state(PartState.IDLE_IN_BUFFER, 3.5)
        part.update_state(PartState.FINISHED, 4.0)

        assert part.buckets.wait == pytest.approx(1.5)
        assert part.buckets.transport == pytest.approx(0.5)
        assert part.buckets.processing == pytest.approx(2.0)
        assert part.buckets.total == pytest.approx(part.lead_time)

    def test_worker_travel_counts_as_transport(self):
        part = make_part()
        part.update_state(PartState.WAITING_FOR_WORKER_TRAVEL, 0.0)
        part.update_state(PartState.PROCESSING, 0.25)
        assert part.buckets.transport == pytest.approx(0.25)

    def test_calendar_gap_counted_as_wait(self):
        """测试加工跨越非工作时间时，空档计入等待"""
        calendar = ShiftCalendar([ShiftConfig(id="1", days_per_week=7, start_hour=0, end_hour=16)])
        part = make_part()
        part.update_state(PartState.PROCESSING, 0.0, calendar)
        part.update_state(PartState.PROCESSING, 15.0, calendar)
        part.update_state(PartState.FINISHED, 25.0, calendar)

        assert part.buckets.processing == pytest.approx(17.0)
        assert part.buckets.wait == pytest.approx(8.0)
        assert part.buckets.total == pytest.approx(25.0)

    def test_finished_and_scrapped_stamp_time(self):
        part = make_part(created_at=2.0)
        assert part.lead_time is None
        part.update_state(PartState.SCRAPPED, 5.0)
        assert part.finished_at == 5.0
        assert part.lead_time == pytest.approx(3.0)
        assert part.is_terminal

    def test_assembled_does_not_stamp_finish(self):
        part = make_part(kind=PartKind.CHILD, product_code="A")
        part.update_state(PartState.ASSEMBLED, 1.0)
        assert part.finished_at is None
        assert part.is_terminal


class TestRouting:
    """工艺路线游标测试"""

    def test_cursor_advances(self):
        part = make_part(routing=[Operation(id="op1"), Operation(id="op2")])
        assert part.next_operation().id == "op1"
        part.advance_routing()
        assert part.next_operation().id == "op2"
        part.advance_routing()
        assert part.next_operation() is None
        assert part.routing_exhausted

        # 游标不会越界
        part.advance_routing()
        assert part.routing_cursor == 2

    def test_extend_after_exhausted(self):
        """测试装配工序追加到路线末尾，游标不回退"""
        part = make_part(routing=[Operation(id="op1")])
        part.advance_routing()
        part.extend_routing([Operation(id="asm1"), Operation(id="asm2")])
        assert part.routing_cursor == 1
        assert part.next_operation().id == "asm1"
        assert not part.routing_exhausted

    def test_to_dict(self):
        part = make_part(routing=[Operation(id="op1")])
        data = part.to_dict()
        assert data["kind"] == "PARENT"
        assert data["state"] == "CREATED"
        assert data["routing_length"] == 1
        assert data["assembled"] is False
