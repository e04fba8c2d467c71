# athere_proxy/log_config.py
"""
日志配置。

构造传给 uvicorn `log_config` 的字典配置：交互式终端下使用 colorlog 彩色输出，
后台部署（或设置了 NO_COLOR）时使用纯文本格式。日志级别名称以中文显示。
"""
import logging
import os
import sys
from typing import Any, Dict, Optional

import colorlog

from .config import AppSettings, LOGGER_NAME

LEVEL_NAME_MAP: Dict[str, str] = {
    "DEBUG": "调试",
    "INFO": "信息",
    "WARNING": "警告",
    "ERROR": "错误",
    "CRITICAL": "严重",
}


def is_interactive_terminal() -> bool:
    """检测是否在交互式终端环境中运行"""
    return (
        hasattr(sys.stderr, "isatty") and sys.stderr.isatty() and
        hasattr(sys.stdout, "isatty") and sys.stdout.isatty() and
        os.getenv("TERM") is not None and
        os.getenv("NO_COLOR") is None
    )


class ChineseColoredFormatter(colorlog.ColoredFormatter):
    """彩色格式化器，提供 %(levelname_chinese)s 字段。"""

    def format(self, record: logging.LogRecord) -> str:
        record.levelname_chinese = LEVEL_NAME_MAP.get(record.levelname, record.levelname)
        return super().format(record)


class PlainChineseFormatter(logging.Formatter):
    """纯文本格式化器，不包含任何颜色代码。用于生产环境或非交互式环境。"""

    def format(self, record: logging.LogRecord) -> str:
        record.levelname_chinese = LEVEL_NAME_MAP.get(record.levelname, record.levelname)
        return super().format(record)


def _formatter(fmt: str, colored_fmt: str, use_colors: bool) -> Dict[str, Any]:
    if not use_colors:
        return {
            "()": f"{__name__}.PlainChineseFormatter",
            "format": fmt,
            "datefmt": "%Y-%m-%d %H:%M:%S",
        }
    return {
        "()": f"{__name__}.ChineseColoredFormatter",
        "format": colored_fmt,
        "datefmt": "%Y-%m-%d %H:%M:%S",
        "log_colors": {
            "DEBUG": "cyan",
            "INFO": "green",
            "WARNING": "yellow",
            "ERROR": "red",
            "CRITICAL": "red,bg_white",
        },
        "reset": True,
        "style": "%",
    }


def build_logging_config(app_settings: AppSettings, use_colors: Optional[bool] = None) -> Dict[str, Any]:
    """
    根据应用配置生成 logging.config.dictConfig 可用的字典。

    参数:
        app_settings: 提供应用名称和日志级别。
        use_colors: 是否使用彩色输出，默认自动检测终端。
    """
    if use_colors is None:
        use_colors = is_interactive_terminal()
    name = app_settings.app_name

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": _formatter(
                f"%(asctime)s - {name} - %(levelname_chinese)s - %(message)s",
                f"%(log_color)s%(asctime)s - %(blue)s{name}%(reset)s - %(log_color)s%(levelname_chinese)s%(reset)s - %(message)s",
                use_colors,
            ),
            "access": _formatter(
                f"%(asctime)s - {name} - 访问 - %(message)s",
                f"%(log_color)s%(asctime)s - %(blue)s{name}%(reset)s - %(green)s访问%(reset)s - %(message)s",
                use_colors,
            ),
        },
        "handlers": {
            "default": {
                "formatter": "default",
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stderr",
            },
            "access": {
                "formatter": "access",
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            LOGGER_NAME: {
                "handlers": ["default"],
                "level": app_settings.log_level.upper(),
                "propagate": False,
            },
            "uvicorn.error": {
                "handlers": ["default"],
                "level": "INFO",
                "propagate": False,
            },
            "uvicorn.access": {
                "handlers": ["access"],
                "level": "INFO",
                "propagate": False,
            },
        },
    }
