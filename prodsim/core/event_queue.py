"""
事件队列
以 (time, seq) 为键的二叉最小堆

设计要点:
- seq 在每次入队时严格递增，同一时刻的事件按调度顺序（FIFO）出队
- 时间比较为精确比较，不引入epsilon
- push/pop O(log n)，peek O(1)
"""

import heapq
import math
from typing import List, Optional, Tuple

from prodsim.errors import SchedulingError
from prodsim.models.event_model import Event, EventPayload


class EventQueue:
    """
    确定性优先队列

    堆元素为 (time, seq, Event)，seq唯一，因此永远不会比较到Event本身
    """

    def __init__(self):
        self._heap: List[Tuple[float, int, Event]] = []
        self._sequence = 0

    def push(self, time: float, payload: EventPayload) -> Event:
        """
        调度事件

        Args:
            time: 事件时间（小时）
            payload: 事件载荷

        Returns:
            入队的事件

        Raises:
            SchedulingError: 时间为NaN或无穷
        """
        if time is None or math.isnan(time) or math.isinf(time):
            raise SchedulingError(f"非法事件时间 {time!r}（{type(payload).__name__}）")
        event = Event(time=float(time), seq=self._sequence, payload=payload)
        self._sequence += 1
        heapq.heappush(self._heap, (event.time, event.seq, event))
        return event

    def pop(self) -> Optional[Event]:
        """取出最早的事件，队列为空返回None"""
        if not self._heap:
            return None
        return heapq.heappop(self._heap)[2]

    def peek(self) -> Optional[Event]:
        """查看最早的事件但不取出"""
        if not self._heap:
            return None
        return self._heap[0][2]

    def is_empty(self) -> bool:
        return not self._heap

    @property
    def scheduled_count(self) -> int:
        """累计入队数量"""
        return self._sequence

    def __len__(self) -> int:
        return len(self._heap)
