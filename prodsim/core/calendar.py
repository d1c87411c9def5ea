"""
班次日历
把连续的仿真时间轴映射为工作/非工作区间，并在非工作区间上推进工时

功能:
- 判断某时刻是否为工作时间
- 查找下一个工作时刻
- 按小时步进推进工时（跳过非工作时间）
- 统计已付工时、区间内的非工作时长

设计要点:
- 以整点小时为步进单元，状态在每个单元的起点判定
- 在最后一段连续工作区间内直接计算 起点 + 剩余工时，全天工作的日历得到精确的 start + work
- 迭代超限视为致命错误
"""

import math
from typing import List

from prodsim.errors import CalendarError
from prodsim.models.config_model import ShiftConfig

HOURS_PER_DAY = 24
DAYS_PER_WEEK = 7
# 查找下一个工作时刻时最多扫描一周
MAX_IDLE_SCAN = HOURS_PER_DAY * DAYS_PER_WEEK
MAX_ITERATIONS = 10000


class ShiftCalendar:
    """
    班次日历（无状态，运行期间只读）

    Args:
        shifts: 班次列表
    """

    def __init__(self, shifts: List[ShiftConfig]):
        self.shifts = [s for s in shifts if s.active]

    def has_active_shift(self) -> bool:
        """是否存在至少一个可生效的班次"""
        return any(s.days_per_week > 0 for s in self.shifts)

    def is_working_time(self, t: float) -> bool:
        """
        判断某时刻是否为工作时间

        Args:
            t: 仿真时间（小时）
        """
        day_index = math.floor(t / HOURS_PER_DAY)
        hour = t % HOURS_PER_DAY
        weekday = day_index % DAYS_PER_WEEK
        for shift in self.shifts:
            if weekday >= shift.days_per_week:
                continue
            if shift.end_hour > shift.start_hour:
                if shift.start_hour <= hour < shift.end_hour:
                    return True
            elif hour >= shift.start_hour or hour < shift.end_hour:
                return True
        return False

    def next_working_instant(self, t: float) -> float:
        """
        下一个工作时刻（t本身为工作时间时返回t）

        Raises:
            CalendarError: 一周内没有任何工作时间
        """
        if self.is_working_time(t):
            return t
        cursor = t
        for _ in range(MAX_IDLE_SCAN + 1):
            cursor = math.floor(cursor) + 1.0
            if self.is_working_time(cursor):
                return cursor
        raise CalendarError(f"从 t={t:.2f}h 起一周内没有工作时间")

    def advance(self, start: float, work_hours: float) -> float:
        """
        从start起推进work_hours工时，返回完成时刻

        Args:
            start: 开始时间（小时）
            work_hours: 需要的工时（小时）

        Returns:
            完成时刻（可能恰好落在班次结束边界上）

        Raises:
            CalendarError: 工时非法或迭代超限
        """
        if work_hours is None or math.isnan(work_hours) or work_hours < 0:
            raise CalendarError(f"非法工时 {work_hours!r}")
        cursor = self.next_working_instant(start)
        if work_hours == 0:
            return cursor

        run_start = cursor
        done = 0.0
        for _ in range(MAX_ITERATIONS):
            boundary = math.floor(cursor) + 1.0
            if self.is_working_time(cursor):
                needed = work_hours - done
                if needed <= boundary - run_start:
                    return run_start + needed
                cursor = boundary
                if not self.is_working_time(cursor):
                    done += cursor - run_start
            else:
                cursor = boundary
                if self.is_working_time(cursor):
                    run_start = cursor
        raise CalendarError(
            f"推进工时超过迭代上限 {MAX_ITERATIONS}（start={start:.2f}h, work={work_hours:.2f}h）"
        )

    def non_working_time(self, start: float, end: float) -> float:
        """
        区间 [start, end) 内的非工作时长

        与 advance 一致，每个小时单元的状态在该单元（或区间起点）处判定
        """
        if end <= start:
            return 0.0
        idle = 0.0
        cursor = start
        while cursor < end:
            boundary = min(end, math.floor(cursor) + 1.0)
            if not self.is_working_time(cursor):
                idle += boundary - cursor
            cursor = boundary
        return idle

    def paid_hours(self, total_duration: float) -> int:
        """
        [0, total_duration) 内为工作时间的整点小时数
        """
        return sum(1 for t in range(math.ceil(total_duration)) if self.is_working_time(t))
