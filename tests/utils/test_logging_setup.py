#!/usr/bin/env python3
"""日志配置测试"""

import logging

import pytest

from photonicbandsim.utils.logging_setup import setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    for h in root.handlers:
        if h not in handlers:
            h.close()
    root.handlers = handlers
    root.setLevel(level)


class TestSetupLogging:
    def test_run_log_created(self, tmp_path, restore_root_logger):
        setup_logging(str(tmp_path), level="INFO")
        logging.getLogger("photonicbandsim.test").debug("调试信息写入文件")
        for h in restore_root_logger.handlers:
            h.flush()
        text = (tmp_path / "run.log").read_text(encoding="utf-8")
        assert "调试信息写入文件" in text

    def test_console_handler_not_duplicated(self, restore_root_logger):
        def streams():
            return [
                h
                for h in restore_root_logger.handlers
                if isinstance(h, logging.StreamHandler)
                and not isinstance(h, logging.FileHandler)
            ]

        setup_logging(level=logging.WARNING)
        first = len(streams())
        setup_logging(level=logging.WARNING)
        assert first >= 1
        assert len(streams()) == first
        assert all(h.level == logging.WARNING for h in streams())

    def test_unknown_level_falls_back_to_info(self, restore_root_logger):
        setup_logging(level="NOT_A_LEVEL")
        assert restore_root_logger.level == logging.INFO
