"""paraexec - 并发运行多个命令，合并带标签的输出。

环境变量:
    PARAEXEC_LOG_LEVEL: 日志级别 (默认 WARNING)
    PARAEXEC_LOG_DEBUG: 日志输出到临时文件 (默认 false)
    PARAEXEC_ENCODING: 子进程输出编码 (默认 utf-8)

用法:
    paraexec :: build/ make -C a :: test/ CI=1 pytest -q
"""

__version__ = "0.1.0"

from .app import main

__all__ = ["__version__", "main"]
