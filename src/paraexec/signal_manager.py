"""信号管理模块。

paraexec 不提供取消单个命令的方式，信号策略如下：
- SIGINT: 终端的 Ctrl+C 会直接送达同一进程组的子进程，
  paraexec 本身不退出，继续收集输出和退出状态
- 双击窗口内第二次 SIGINT: 强制退出（退出码 130）
- SIGTERM: 强制退出（退出码 143）

强制退出时由 on_force_exit 回调中止监督任务，剩余子进程会被终止。

支持的配置：
- PARAEXEC_SIGINT_DOUBLE_TAP_WINDOW: 双击退出窗口时间
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
import time
from typing import Callable, Optional

from .config import get_config

__all__ = ["SignalManager"]

logger = logging.getLogger(__name__)


class SignalManager:
    """信号管理器。

    Example:
        ```python
        with anyio.CancelScope() as scope:
            signal_manager = SignalManager(on_force_exit=scope.cancel)
            await signal_manager.start()
            try:
                result = await supervisor.run(specs)
            finally:
                await signal_manager.stop()
        ```

    Attributes:
        double_tap_window: 双击退出窗口时间（秒）
        exit_code: 强制退出时使用的退出码（未强制退出时为 None）
    """

    def __init__(
        self,
        double_tap_window: Optional[float] = None,
        on_force_exit: Optional[Callable[[], None]] = None,
    ) -> None:
        """初始化信号管理器。

        Args:
            double_tap_window: 双击退出窗口时间（默认从配置读取）
            on_force_exit: 强制退出时的回调函数
        """
        self.double_tap_window = (
            double_tap_window
            if double_tap_window is not None
            else get_config().sigint_double_tap_window
        )
        self._on_force_exit = on_force_exit

        # 内部状态
        self._last_sigint_time: float = 0.0
        self._interrupted: bool = False
        self._force_exit: bool = False
        self.exit_code: Optional[int] = None
        self._original_sigint_handler: Optional[signal.Handlers] = None
        self._running: bool = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def is_interrupted(self) -> bool:
        """是否收到过 SIGINT。"""
        return self._interrupted

    @property
    def is_force_exit(self) -> bool:
        """是否请求强制退出。"""
        return self._force_exit

    async def start(self) -> None:
        """启动信号监听。

        必须在 asyncio 事件循环中调用。
        """
        if self._running:
            logger.warning("SignalManager already running")
            return

        self._loop = asyncio.get_running_loop()
        self._running = True

        if sys.platform != "win32":
            try:
                self._loop.add_signal_handler(signal.SIGINT, self._handle_sigint)
                self._loop.add_signal_handler(signal.SIGTERM, self._handle_sigterm)
            except (RuntimeError, ValueError) as e:
                # 非主线程的事件循环无法安装信号处理器
                logger.debug(f"Signal handlers not installed: {e}")
                return
            logger.debug(
                f"Signal handlers installed (double_tap_window={self.double_tap_window}s)"
            )
        else:
            # Windows: 使用 signal.signal() 设置处理器
            self._original_sigint_handler = signal.signal(
                signal.SIGINT,
                lambda sig, frame: self._loop.call_soon_threadsafe(self._handle_sigint),
            )
            logger.debug("SIGINT handler installed on Windows")

    async def stop(self) -> None:
        """停止信号监听，恢复原始处理器。"""
        if not self._running:
            return

        self._running = False

        if sys.platform != "win32" and self._loop:
            try:
                self._loop.remove_signal_handler(signal.SIGINT)
                self._loop.remove_signal_handler(signal.SIGTERM)
            except (RuntimeError, ValueError) as e:
                logger.debug(f"Error removing signal handlers: {e}")
        elif sys.platform == "win32":
            try:
                signal.signal(signal.SIGINT, self._original_sigint_handler)
            except (TypeError, ValueError) as e:
                logger.debug(f"Error restoring SIGINT handler: {e}")

        logger.debug("Signal handlers removed")

    def _handle_sigint(self) -> None:
        """处理 SIGINT 信号。

        第一次只记录，子进程自行处理中断；双击窗口内再次收到则强制退出。
        """
        current_time = time.monotonic()
        time_since_last = current_time - self._last_sigint_time
        self._last_sigint_time = current_time

        if self._interrupted and time_since_last < self.double_tap_window:
            logger.warning("Double SIGINT detected, forcing exit")
            self._force(128 + signal.SIGINT)
            return

        self._interrupted = True
        logger.info(
            "SIGINT received, waiting for commands to exit. "
            f"Press Ctrl+C again within {self.double_tap_window}s to abort."
        )

    def _handle_sigterm(self) -> None:
        """处理 SIGTERM 信号：立即强制退出。"""
        logger.info("SIGTERM received, aborting run")
        self._force(128 + signal.SIGTERM)

    def _force(self, exit_code: int) -> None:
        """设置强制退出标志并调用回调。"""
        if self._force_exit:
            return
        self._force_exit = True
        self.exit_code = int(exit_code)

        if self._on_force_exit:
            try:
                self._on_force_exit()
            except Exception as e:
                logger.warning(f"Error in force exit callback: {e}")
