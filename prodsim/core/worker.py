"""
引擎消息边界
宿主通过消息与仿真引擎交互，永远不直接访问引擎内部状态

功能:
- START_SIMULATION 消息进入收件箱
- 工作线程依次运行仿真
- 回复 SIMULATION_LOG + SIMULATION_RESULTS，意外异常回复 FATAL_ERROR
"""

import logging
import queue
import threading
import uuid
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

from prodsim.core.simulation_engine import SimulationEngine
from prodsim.models.config_model import LineConfig, OrderRow, ProductCatalog, RunSettings
from prodsim.models.enums import MessageType
from prodsim.models.result_model import SimulationReport

logger = logging.getLogger(__name__)

# 等待回复的默认超时（秒）
DEFAULT_REPLY_TIMEOUT = 300.0


@dataclass
class StartSimulation:
    """START_SIMULATION 消息"""
    config: LineConfig
    catalog: ProductCatalog
    orders: List[OrderRow]
    settings: RunSettings
    reply_to: "queue.Queue[EngineMessage]"
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))


@dataclass
class EngineMessage:
    """引擎发给宿主的消息"""
    type: MessageType
    payload: Any
    request_id: str = ""


class SimulationWorker:
    """
    仿真工作线程

    收件箱中的请求按到达顺序逐个处理，每个请求使用独立的引擎实例
    """

    _STOP = object()

    def __init__(self):
        self.inbox: "queue.Queue" = queue.Queue()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        """启动工作线程（重复调用无副作用）"""
        if self.running:
            return
        self._thread = threading.Thread(target=self._serve, name="prodsim-worker", daemon=True)
        self._thread.start()
        logger.info("仿真工作线程已启动")

    def stop(self, timeout: Optional[float] = None):
        """处理完已排队的请求后停止"""
        if not self.running:
            return
        self.inbox.put(self._STOP)
        self._thread.join(timeout)
        self._thread = None
        logger.info("仿真工作线程已停止")

    def submit(
        self,
        config: LineConfig,
        catalog: ProductCatalog,
        orders: List[OrderRow],
        settings: RunSettings
    ) -> "queue.Queue[EngineMessage]":
        """
        投递 START_SIMULATION 消息

        Returns:
            回复队列
        """
        self.start()
        reply: "queue.Queue[EngineMessage]" = queue.Queue()
        self.inbox.put(StartSimulation(config, catalog, orders, settings, reply))
        return reply

    def _serve(self):
        while True:
            message = self.inbox.get()
            if message is self._STOP:
                break
            self._handle(message)

    def _handle(self, message: StartSimulation):
        try:
            engine = SimulationEngine(message.config, message.catalog, message.orders, message.settings)
            log, report = engine.run()
        except Exception as e:
            logger.exception("仿真工作线程出现未预期的异常")
            message.reply_to.put(EngineMessage(MessageType.FATAL_ERROR, [str(e)], message.request_id))
            return
        message.reply_to.put(EngineMessage(MessageType.SIMULATION_LOG, log, message.request_id))
        message.reply_to.put(EngineMessage(MessageType.SIMULATION_RESULTS, report, message.request_id))


def collect(
    reply: "queue.Queue[EngineMessage]",
    timeout: float = DEFAULT_REPLY_TIMEOUT
) -> Tuple[List[str], Optional[SimulationReport], List[str]]:
    """
    读取一次仿真的全部回复

    Returns:
        (运行日志, 仿真报告, 致命错误列表)

    Raises:
        queue.Empty: 超时
    """
    log: List[str] = []
    while True:
        message = reply.get(timeout=timeout)
        if message.type == MessageType.SIMULATION_LOG:
            log = list(message.payload)
        elif message.type == MessageType.SIMULATION_RESULTS:
            return log, message.payload, []
        elif message.type == MessageType.FATAL_ERROR:
            return log, None, list(message.payload)


def run_in_worker(
    worker: SimulationWorker,
    config: LineConfig,
    catalog: ProductCatalog,
    orders: List[OrderRow],
    settings: RunSettings,
    timeout: float = DEFAULT_REPLY_TIMEOUT
) -> Tuple[List[str], Optional[SimulationReport], List[str]]:
    """通过工作线程运行一次仿真并等待结果"""
    return collect(worker.submit(config, catalog, orders, settings), timeout)
