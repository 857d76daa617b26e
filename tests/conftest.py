"""Pytest 配置和 fixtures。"""

from __future__ import annotations

import io
import sys
from pathlib import Path

import pytest

# 项目根目录
PROJECT_ROOT = Path(__file__).parent.parent

# 添加 src 目录到 Python 路径
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from paraexec.runtime.multiplexer import OutputSink  # noqa: E402

FAKE_CMD = Path(__file__).parent / "fixtures" / "fake_cmd.py"


@pytest.fixture
def fake_cmd() -> list[str]:
    """运行 fake_cmd.py 的 argv 前缀。"""
    return [sys.executable, str(FAKE_CMD)]


@pytest.fixture
def buffer() -> io.StringIO:
    """收集输出记录的缓冲区。"""
    return io.StringIO()


@pytest.fixture
def sink(buffer: io.StringIO) -> OutputSink:
    """写入 buffer 的 OutputSink。"""
    return OutputSink(buffer)


@pytest.fixture(autouse=True)
def _reset_config():
    """每个测试后重置全局配置缓存。"""
    yield
    from paraexec import config
    config._config = None
