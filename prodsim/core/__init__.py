"""
核心仿真模块包
包含离散事件仿真引擎的核心组件

模块说明:
- simulation_engine.py: 仿真引擎主控（事件循环与处理器）
- state.py: 单次运行的可变状态
- event_queue.py: 事件队列（按 time, seq 排序的最小堆）
- calendar.py: 班次日历（工作时间判定与工时推进）
- resource_pool.py: 工人/工具资源池（非阻塞请求与释放唤醒）
- node_queue.py: 工位/缓冲区零件队列
- event_collector.py: 回放事件收集器
- worker.py: 引擎消息边界（工作线程）
"""

from prodsim.core.simulation_engine import SimulationEngine, run_simulation
from prodsim.core.state import SimulationState
from prodsim.core.event_queue import EventQueue
from prodsim.core.calendar import ShiftCalendar
from prodsim.core.resource_pool import ResourcePool
from prodsim.core.node_queue import NodeQueue
from prodsim.core.event_collector import ReplayCollector, filter_replay_events
from prodsim.core.worker import SimulationWorker, run_in_worker

__all__ = [
    "SimulationEngine",
    "run_simulation",
    "SimulationState",
    "EventQueue",
    "ShiftCalendar",
    "ResourcePool",
    "NodeQueue",
    "ReplayCollector",
    "filter_replay_events",
    "SimulationWorker",
    "run_in_worker",
]
