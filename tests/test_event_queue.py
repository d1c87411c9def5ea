"""
事件队列单元测试

测试内容:
- 按时间出队
- 同一时刻FIFO
- 非法时间拒绝
"""

import math

import numpy as np
import pytest

from prodsim.core.event_queue import EventQueue
from prodsim.errors import SchedulingError
from prodsim.models.enums import EventKind
from prodsim.models.event_model import PartArrivesAtNode, ShiftResume


class TestEventQueue:
    """事件队列测试类"""

    def test_pop_in_time_order(self):
        """测试按时间顺序出队"""
        queue = EventQueue()
        queue.push(5.0, PartArrivesAtNode("p1", "B1"))
        queue.push(1.0, PartArrivesAtNode("p2", "B1"))
        queue.push(3.0, PartArrivesAtNode("p3", "B1"))

        times = [queue.pop().time for _ in range(3)]
        assert times == [1.0, 3.0, 5.0]
        assert queue.is_empty()

    def test_same_time_fifo(self):
        """测试同一时刻按调度顺序出队"""
        queue = EventQueue()
        for index in range(10):
            queue.push(2.0, PartArrivesAtNode(f"p{index}", "B1"))

        order = [queue.pop().payload.part_id for _ in range(10)]
        assert order == [f"p{index}" for index in range(10)]

    def test_event_kind_from_payload(self):
        """测试事件类型由载荷推导"""
        queue = EventQueue()
        event = queue.push(0.0, ShiftResume())
        assert event.kind == EventKind.SHIFT_RESUME

    def test_empty_queue(self):
        """测试空队列"""
        queue = EventQueue()
        assert queue.pop() is None
        assert queue.peek() is None
        assert len(queue) == 0

    def test_peek_does_not_remove(self):
        """测试peek不取出事件"""
        queue = EventQueue()
        queue.push(1.0, ShiftResume())
        assert queue.peek().time == 1.0
        assert len(queue) == 1

    @pytest.mark.parametrize("bad_time", [math.nan, math.inf, -math.inf])
    def test_rejects_invalid_time(self, bad_time):
        """测试拒绝NaN与无穷时间"""
        queue = EventQueue()
        with pytest.raises(SchedulingError):
            queue.push(bad_time, ShiftResume())
        assert queue.is_empty()

    def test_scheduled_count(self):
        """测试累计入队数量"""
        queue = EventQueue()
        queue.push(1.0, ShiftResume())
        queue.push(2.0, ShiftResume())
        queue.pop()
        assert queue.scheduled_count == 2
        assert len(queue) == 1

    def test_random_pushes_ordered(self):
        """测试大量随机入队后按 (时间, 序号) 出队"""
        rng = np.random.default_rng(2025)
        queue = EventQueue()
        # 取整到0.1小时以制造大量同时刻事件
        for value in np.round(rng.uniform(0, 500, size=10000), 1):
            queue.push(float(value), ShiftResume())

        popped = [queue.pop() for _ in range(10000)]
        keys = [(e.time, e.seq) for e in popped]
        assert keys == sorted(keys)
        assert queue.is_empty()
