"""paraexec 异常类。

错误分类：
- UsageError: 参数无法组成任何命令，或请求帮助
- LaunchError: 单个命令无法启动（只影响该命令）
"""

from __future__ import annotations

__all__ = [
    "ParaexecError",
    "UsageError",
    "LaunchError",
]


class ParaexecError(Exception):
    """paraexec 基础异常。"""
    pass


class UsageError(ParaexecError):
    """命令行用法错误。

    Attributes:
        exit_code: 打印用法后使用的进程退出码（帮助为 0，错误为 1）
    """

    def __init__(self, message: str = "", exit_code: int = 1) -> None:
        self.exit_code = exit_code
        super().__init__(message)


class LaunchError(ParaexecError):
    """子进程启动失败（未找到程序、无执行权限等）。

    Attributes:
        label: 命令标签
        detail: 面向用户的错误描述
    """

    def __init__(self, label: str, detail: str) -> None:
        self.label = label
        self.detail = detail
        super().__init__(f"{label}: {detail}")
