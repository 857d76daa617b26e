"""paraexec 应用入口。

包含日志配置、用法输出和主入口点。
"""

from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import Sequence
from typing import NoReturn

import anyio

from .command_spec import ParsedCommandLine, parse_command_line
from .config import Config, get_config
from .errors import UsageError
from .runtime.launcher import ProcessLauncher
from .runtime.multiplexer import OutputSink
from .signal_manager import SignalManager
from .supervisor import Supervisor

__all__ = ["USAGE", "run", "run_async", "main"]

logger = logging.getLogger(__name__)

USAGE = (
    "usage: paraexec ( <separator> [<label>/] [<ENV>=<value>...] "
    "<command> [<argument>...] )+"
)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def print_usage(sink: OutputSink) -> None:
    """输出用法说明（写到 stdout）。"""
    sink.write_line(USAGE)


def configure_logging(config: Config) -> None:
    """配置日志输出。

    stdout 只承载多路输出，诊断日志写到 stderr 或临时文件。
    """
    log_handlers: list[logging.Handler] = []

    if config.log_debug and config.log_file:
        # LOG_DEBUG 模式：输出到临时文件
        file_handler = logging.FileHandler(config.log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        log_handlers.append(file_handler)
    else:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        log_handlers.append(stderr_handler)

    # root logger（第三方库）保持 WARNING，减少噪音
    logging.basicConfig(
        level=logging.WARNING,
        handlers=log_handlers,
    )
    # 只对 paraexec 命名空间使用配置的级别
    logging.getLogger("paraexec").setLevel(config.log_level)


async def run_async(
    parsed: ParsedCommandLine,
    sink: OutputSink,
    config: Config,
) -> int:
    """运行所有命令并返回进程退出码。

    Args:
        parsed: 解析后的命令行
        sink: 输出目标
        config: 配置

    Returns:
        0 = 全部成功，1 = 有命令失败，130/143 = 被信号强制中止
    """
    supervisor = Supervisor(
        launcher=ProcessLauncher(line_limit=config.line_limit),
        sink=sink,
        encoding=config.encoding,
    )

    with anyio.CancelScope() as scope:
        signal_manager = SignalManager(
            double_tap_window=config.sigint_double_tap_window,
            on_force_exit=scope.cancel,
        )
        await signal_manager.start()
        try:
            result = await supervisor.run(parsed.commands, label_width=parsed.label_width)
        finally:
            await signal_manager.stop()

    if signal_manager.is_force_exit:
        exit_code = signal_manager.exit_code or 1
        logger.warning(f"Run aborted by signal, exiting with code {exit_code}")
        return exit_code

    return result.exit_code


def run(
    argv: Sequence[str],
    sink: OutputSink | None = None,
    config: Config | None = None,
) -> int:
    """解析参数并运行，返回退出码（不调用 sys.exit）。

    Args:
        argv: 命令行参数（不含程序名）
        sink: 输出目标（默认 stdout）
        config: 配置（默认从环境变量加载）
    """
    sink = sink or OutputSink()
    config = config or get_config()

    try:
        parsed = parse_command_line(argv)
    except UsageError as e:
        logger.debug(f"Usage error: {e}")
        print_usage(sink)
        return e.exit_code

    return asyncio.run(run_async(parsed, sink, config))


def main(argv: Sequence[str] | None = None) -> NoReturn:
    """主入口点。"""
    config = get_config()
    configure_logging(config)
    logger.debug(f"Starting paraexec: {config}")

    if argv is None:
        argv = sys.argv[1:]

    sys.exit(run(argv, config=config))


if __name__ == "__main__":
    main()
