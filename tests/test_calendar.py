"""
班次日历单元测试

测试内容:
- 工作时间判定（日班、跨夜班、周末）
- 下一个工作时刻
- 工时推进跨越班次/周末
- 非工作时长与已付工时
"""

import pytest

from prodsim.core.calendar import ShiftCalendar
from prodsim.errors import CalendarError
from prodsim.models.config_model import ShiftConfig


def day_shift() -> ShiftCalendar:
    """周一至周五 06:00-14:00"""
    return ShiftCalendar([ShiftConfig(id="1", days_per_week=5, start_hour=6, end_hour=14)])


class TestWorkingTime:
    """工作时间判定测试"""

    def test_day_shift_boundaries(self):
        """测试班次边界（含开始、不含结束）"""
        calendar = day_shift()
        assert calendar.is_working_time(6.0)
        assert calendar.is_working_time(13.99)
        assert not calendar.is_working_time(14.0)
        assert not calendar.is_working_time(5.99)

    def test_weekend(self):
        """测试周末不工作"""
        calendar = day_shift()
        assert calendar.is_working_time(4 * 24 + 7)
        assert not calendar.is_working_time(5 * 24 + 7)
        assert not calendar.is_working_time(6 * 24 + 7)
        assert calendar.is_working_time(7 * 24 + 7)

    def test_overnight_shift(self):
        """测试跨夜班次"""
        calendar = ShiftCalendar([ShiftConfig(id="3", days_per_week=5, start_hour="22:00", end_hour="06:00")])
        assert calendar.is_working_time(23.0)
        assert calendar.is_working_time(2.0)
        assert not calendar.is_working_time(10.0)

    def test_inactive_shifts_ignored(self):
        """测试未启用的班次被忽略"""
        calendar = ShiftCalendar([ShiftConfig(id="1", active=False)])
        assert not calendar.has_active_shift()
        assert not calendar.is_working_time(7.0)


class TestNextWorkingInstant:
    """下一个工作时刻测试"""

    def test_already_working(self):
        assert day_shift().next_working_instant(7.5) == 7.5

    def test_after_shift_end(self):
        """测试班次结束后跳到次日开班"""
        assert day_shift().next_working_instant(14.0) == 30.0

    def test_no_working_time(self):
        """测试一周内没有工作时间"""
        calendar = ShiftCalendar([ShiftConfig(id="1", days_per_week=0)])
        with pytest.raises(CalendarError):
            calendar.next_working_instant(0.0)


class TestAdvance:
    """工时推进测试"""

    def test_within_shift(self):
        assert day_shift().advance(6.0, 3.0) == pytest.approx(9.0)

    def test_across_shift_end(self):
        """测试跨越班次结束：剩余工时在次日开班后继续"""
        assert day_shift().advance(13.0, 2.0) == pytest.approx(31.0)

    def test_starts_outside_shift(self):
        """测试从非工作时间开始"""
        assert day_shift().advance(2.0, 1.0) == pytest.approx(7.0)

    def test_zero_work_aligns_to_shift(self):
        """测试零工时对齐到下一个工作时刻"""
        calendar = day_shift()
        assert calendar.advance(13.5, 0) == 13.5
        assert calendar.advance(15.0, 0) == 30.0

    def test_across_weekend(self):
        """测试跨越周末"""
        friday_afternoon = 4 * 24 + 13
        assert day_shift().advance(friday_afternoon, 2.0) == pytest.approx(7 * 24 + 7)

    def test_finish_on_boundary(self):
        """测试恰好在班次结束时完成"""
        assert day_shift().advance(6.0, 8.0) == pytest.approx(14.0)

    def test_invalid_work(self):
        """测试非法工时"""
        with pytest.raises(CalendarError):
            day_shift().advance(6.0, -1.0)
        with pytest.raises(CalendarError):
            day_shift().advance(6.0, float("nan"))


class TestAccounting:
    """非工作时长与已付工时测试"""

    def test_non_working_time(self):
        calendar = day_shift()
        assert calendar.non_working_time(13.0, 31.0) == pytest.approx(16.0)
        assert calendar.non_working_time(7.0, 9.0) == 0.0
        assert calendar.non_working_time(9.0, 7.0) == 0.0

    def test_paid_hours(self):
        calendar = day_shift()
        assert calendar.paid_hours(24) == 8
        assert calendar.paid_hours(7 * 24) == 40
        assert calendar.paid_hours(0) == 0
