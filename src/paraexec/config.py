"""paraexec 环境变量配置管理。

环境变量:
    PARAEXEC_LOG_LEVEL: paraexec 日志级别
        - DEBUG / INFO / WARNING / ERROR
        - 默认 WARNING（诊断信息只写到 stderr，stdout 保留给多路输出）

    PARAEXEC_LOG_DEBUG: 日志调试模式
        - true/1/yes = 开启 (DEBUG 日志输出到临时文件)
        - false/0/no = 关闭 (默认，日志输出到 stderr)

    PARAEXEC_ENCODING: 子进程输出的解码方式
        - 默认 utf-8，无法解码的行会被跳过

    PARAEXEC_LINE_LIMIT: 单行读取缓冲上限（字节）
        - 默认 1 MiB，限制在 4 KiB - 64 MiB
        - 超过上限的行会被跳过

    PARAEXEC_SIGINT_DOUBLE_TAP_WINDOW: 双击退出窗口时间（秒）
        - 默认 1.0 秒
        - 在此时间窗口内第二次 Ctrl+C 将强制退出
"""

from __future__ import annotations

import codecs
import logging
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

__all__ = ["Config", "load_config", "get_config", "reload_config"]

DEFAULT_ENCODING = "utf-8"
DEFAULT_LINE_LIMIT = 1024 * 1024
MIN_LINE_LIMIT = 4 * 1024
MAX_LINE_LIMIT = 64 * 1024 * 1024
DEFAULT_DOUBLE_TAP_WINDOW = 1.0

_LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
}


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """解析布尔值环境变量。"""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _parse_log_level(value: str | None) -> int:
    """解析日志级别，无效值返回 WARNING。"""
    if not value:
        return logging.WARNING
    return _LOG_LEVELS.get(value.strip().upper(), logging.WARNING)


def _parse_encoding(value: str | None) -> str:
    """解析编码名称，未知编码回退到 utf-8。"""
    if not value or not value.strip():
        return DEFAULT_ENCODING
    try:
        return codecs.lookup(value.strip()).name
    except LookupError:
        return DEFAULT_ENCODING


def _parse_line_limit(value: str | None) -> int:
    """解析行缓冲上限。"""
    if not value:
        return DEFAULT_LINE_LIMIT
    try:
        limit = int(value)
    except ValueError:
        return DEFAULT_LINE_LIMIT
    return max(MIN_LINE_LIMIT, min(limit, MAX_LINE_LIMIT))


def _parse_double_tap_window(value: str | None) -> float:
    """解析双击窗口时间环境变量。"""
    if not value:
        return DEFAULT_DOUBLE_TAP_WINDOW
    try:
        window = float(value)
        return max(0.1, min(window, 10.0))  # 限制在 0.1-10 秒范围
    except ValueError:
        return DEFAULT_DOUBLE_TAP_WINDOW


@dataclass
class Config:
    """paraexec 配置。

    Attributes:
        log_level: paraexec 命名空间的日志级别
        log_debug: 日志调试模式（输出到临时文件）
        log_file: 日志文件路径（当 log_debug=True 时自动设置）
        encoding: 子进程输出解码方式
        line_limit: 单行读取缓冲上限（字节）
        sigint_double_tap_window: 双击退出窗口时间（秒）
    """

    log_level: int = logging.WARNING
    log_debug: bool = False
    log_file: str | None = None
    encoding: str = DEFAULT_ENCODING
    line_limit: int = DEFAULT_LINE_LIMIT
    sigint_double_tap_window: float = DEFAULT_DOUBLE_TAP_WINDOW

    def __repr__(self) -> str:
        return (
            f"Config(log_level={logging.getLevelName(self.log_level)}, "
            f"log_debug={self.log_debug}, "
            f"log_file={self.log_file}, "
            f"encoding={self.encoding}, "
            f"line_limit={self.line_limit}, "
            f"sigint_double_tap_window={self.sigint_double_tap_window})"
        )


def _generate_log_file_path() -> str:
    """生成日志文件路径。

    Returns:
        临时目录下的日志文件绝对路径
    """
    log_dir = Path(tempfile.gettempdir()) / "paraexec"
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"paraexec_debug_{timestamp}_{os.getpid()}.log"

    return str(log_file.resolve())


def load_config() -> Config:
    """从环境变量加载配置。"""
    log_debug = _parse_bool(os.environ.get("PARAEXEC_LOG_DEBUG"), default=False)
    log_file = _generate_log_file_path() if log_debug else None

    return Config(
        log_level=logging.DEBUG if log_debug else _parse_log_level(os.environ.get("PARAEXEC_LOG_LEVEL")),
        log_debug=log_debug,
        log_file=log_file,
        encoding=_parse_encoding(os.environ.get("PARAEXEC_ENCODING")),
        line_limit=_parse_line_limit(os.environ.get("PARAEXEC_LINE_LIMIT")),
        sigint_double_tap_window=_parse_double_tap_window(
            os.environ.get("PARAEXEC_SIGINT_DOUBLE_TAP_WINDOW")
        ),
    )


# 全局配置实例（延迟加载）
_config: Config | None = None


def get_config() -> Config:
    """获取全局配置实例。"""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> Config:
    """重新加载配置（用于测试）。"""
    global _config
    _config = load_config()
    return _config
