"""
节点队列
缓冲区与工位使用的双端队列，存放零件ID
"""

from collections import deque
from typing import Deque, Iterator, List, Optional


class NodeQueue:
    """零件ID双端队列"""

    def __init__(self):
        self._items: Deque[str] = deque()

    def enqueue(self, part_id: str):
        """入队尾"""
        self._items.append(part_id)

    def enqueue_front(self, part_id: str):
        """插入队首"""
        self._items.appendleft(part_id)

    def dequeue_front(self) -> Optional[str]:
        """取出队首"""
        if not self._items:
            return None
        return self._items.popleft()

    def remove(self, part_id: str) -> bool:
        """按ID移除，返回是否存在"""
        try:
            self._items.remove(part_id)
        except ValueError:
            return False
        return True

    def remove_at(self, index: int) -> str:
        """按位置移除"""
        part_id = self._items[index]
        del self._items[index]
        return part_id

    def peek(self, index: int = 0) -> Optional[str]:
        """查看指定位置（默认队首），越界返回None"""
        if index < 0 or index >= len(self._items):
            return None
        return self._items[index]

    def head(self, limit: int) -> List[str]:
        """前limit个元素"""
        return [part_id for _, part_id in zip(range(limit), self._items)]

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __getitem__(self, index: int) -> str:
        return self._items[index]

    def __contains__(self, part_id: str) -> bool:
        return part_id in self._items
