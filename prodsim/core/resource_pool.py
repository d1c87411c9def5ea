"""
资源池
带等待队列的计数信号量，用于工人池与工具池

功能:
- 原子化的整数量请求（全部授予或进入等待）
- 释放时按策略唤醒等待者
- 持有量跟踪与忙碌工时累计（用于成本核算）

设计要点:
- 请求量超过总容量时直接失败，永不排队
- 等待队列按请求者去重
- 默认 HEAD_OF_LINE 只检查队首：大请求在队首时会阻塞后面可满足的小请求
- 唤醒即授予：被唤醒者的资源已扣减并记入持有量，调用方负责让其继续执行
- 始终满足 available + sum(holders) == capacity
"""

from collections import deque
from typing import Deque, Dict, Optional, Tuple

from prodsim.models.enums import ReleasePolicy


class ResourcePool:
    """
    资源池

    Attributes:
        id: 资源池ID
        name: 名称
        capacity: 总容量
        speed: 行走/搬运速度（米/秒）
        cost_per_hour: 小时费率
        available: 当前可用量
        wait_queue: 等待队列 [(requester_id, count)]
        holders: 请求者 -> 持有量
        busy_hours: 累计忙碌工时（时长 × 数量）
    """

    def __init__(
        self,
        pool_id: str,
        name: str,
        capacity: int,
        speed: float = 1.0,
        cost_per_hour: float = 0.0,
        policy: ReleasePolicy = ReleasePolicy.HEAD_OF_LINE
    ):
        self.id = pool_id
        self.name = name or pool_id
        self.capacity = capacity
        self.speed = speed or 1.0
        self.cost_per_hour = cost_per_hour or 0.0
        self.policy = policy
        self.available = capacity
        self.wait_queue: Deque[Tuple[str, int]] = deque()
        self.holders: Dict[str, int] = {}
        self.busy_hours = 0.0
        self.grants = 0

    def request(self, requester_id: str, count: int) -> bool:
        """
        请求资源

        Args:
            requester_id: 请求者ID
            count: 数量

        Returns:
            是否立即授予（未授予时已进入等待队列，除非请求量超过容量）
        """
        if count > self.capacity:
            return False
        if count <= 0:
            return True
        if self.available >= count:
            self._drop_waiter(requester_id)
            self._grant(requester_id, count)
            return True
        if not self.is_waiting(requester_id):
            self.wait_queue.append((requester_id, count))
        return False

    def release(self, requester_id: str, count: int, usage_duration: float = 0.0) -> Optional[str]:
        """
        释放资源

        Args:
            requester_id: 释放者ID
            count: 数量（超出持有量的部分被截断）
            usage_duration: 本次占用时长（小时）

        Returns:
            被唤醒并已获授予的请求者ID，没有则返回None
        """
        held = self.holders.get(requester_id, 0)
        returned = min(max(count, 0), held)
        if returned:
            remaining = held - returned
            if remaining:
                self.holders[requester_id] = remaining
            else:
                del self.holders[requester_id]
            self.available = min(self.capacity, self.available + returned)
        self.busy_hours += usage_duration * returned
        return self._unblock_next()

    def _unblock_next(self) -> Optional[str]:
        for index, (waiter, needed) in enumerate(self.wait_queue):
            if needed <= self.available:
                del self.wait_queue[index]
                self._grant(waiter, needed)
                return waiter
            if self.policy == ReleasePolicy.HEAD_OF_LINE:
                break
        return None

    def _grant(self, requester_id: str, count: int):
        self.available -= count
        self.holders[requester_id] = self.holders.get(requester_id, 0) + count
        self.grants += 1

    def _drop_waiter(self, requester_id: str):
        for index, (waiter, _) in enumerate(self.wait_queue):
            if waiter == requester_id:
                del self.wait_queue[index]
                return

    def is_waiting(self, requester_id: str) -> bool:
        return any(waiter == requester_id for waiter, _ in self.wait_queue)

    def holding(self, requester_id: str) -> int:
        return self.holders.get(requester_id, 0)

    @property
    def outstanding(self) -> int:
        """已授予未释放的总量"""
        return sum(self.holders.values())

    @property
    def waiting_count(self) -> int:
        return len(self.wait_queue)

    def __repr__(self) -> str:
        return (
            f"ResourcePool({self.id!r}, available={self.available}/{self.capacity}, "
            f"waiting={self.waiting_count})"
        )
