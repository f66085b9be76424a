# -*- coding: utf-8 -*-
"""
恋语AI - 跨平台聊天客户端离线核心
LianyuAI - Cross-platform chat client offline core

Copyright © 2025-2026 LianyuAI Team
License: PolyForm Noncommercial License 1.0.0

模块说明 / Module Description:
  集中式日志系统 - 提供统一的日志配置和管理
  Centralized Logging Module - Unified logging configuration and management

使用示例 / Usage:
    from lianyu.utils.logger import get_logger

    logger = get_logger(__name__)
    logger.info("网关启动 / Gateway started")
    logger.error("错误发生 / Error occurred", exc_info=True)
"""

import logging
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler
from lianyu.config import settings

# Create logs directory if it doesn't exist
# 如果日志目录不存在则创建
log_dir = Path(settings.log_dir)
log_dir.mkdir(parents=True, exist_ok=True)

# Define log format
# 定义日志格式
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def get_logger(name: str) -> logging.Logger:
    """
    获取或创建指定名称的logger

    Get or create a logger with the specified name.

    创建一个配置有控制台处理器和文件处理器的logger。
    File handler使用rotating file handler，最大10MB，保留5个备份文件。
    Creates a logger with console and file handlers. File handler uses rotating
    file handler with 10MB max size and 5 backup files.

    Args:
        name: Logger名称，通常为 __name__ / Logger name (typically __name__)

    Returns:
        配置好的logger实例 / Configured logger instance
    """
    logger = logging.getLogger(name)

    # Avoid adding handlers multiple times
    # 避免多次添加处理器
    if logger.handlers:
        return logger

    level = logging.DEBUG if settings.debug else logging.INFO
    logger.setLevel(level)

    # Console Handler (always enabled)
    # 控制台处理器（总是启用）
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    logger.addHandler(console_handler)

    # File Handler (rotating, max 10MB, keep 5 backups)
    # 文件处理器（轮转，最大10MB，保留5个备份）
    file_handler = RotatingFileHandler(
        log_dir / "lianyu.log",
        maxBytes=10 * 1024 * 1024,  # 10 MB
        backupCount=5,
        encoding='utf-8'
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    logger.addHandler(file_handler)

    return logger
