"""日志配置：级别来自环境变量 LOG_LEVEL（可写在 .env 中）。"""

from __future__ import annotations

import logging
import os
import sys

from dotenv import load_dotenv

load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
if LOG_LEVEL not in VALID_LOG_LEVELS:
    LOG_LEVEL = "INFO"

_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"

_package_logger = logging.getLogger("supervision_graph")
if not _package_logger.handlers:
    _handler = logging.StreamHandler(sys.stdout)
    _handler.setFormatter(logging.Formatter(_FORMAT))
    _package_logger.addHandler(_handler)
    _package_logger.setLevel(getattr(logging, LOG_LEVEL, logging.INFO))


def get_logger(name: str) -> logging.Logger:
    """返回包内模块使用的 logger（挂在 supervision_graph 之下）。"""

    if not name.startswith("supervision_graph"):
        name = f"supervision_graph.{name.split('.')[-1]}"
    return logging.getLogger(name)
