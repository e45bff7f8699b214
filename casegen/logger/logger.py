import sys
from pathlib import Path
from loguru import logger
from casegen.config.settings import LogConfig, settings

def _error_log_path(log_file: Path) -> Path:
    """错误日志与主日志同目录，如 app.log -> app.error.log"""
    return log_file.with_name(f"{log_file.stem}.error{log_file.suffix or '.log'}")

def setup_logger(config: LogConfig = settings.log, debug: bool = settings.DEBUG):
    """配置日志记录器

    控制台与主日志文件按配置级别输出，ERROR及以上额外写入单独的错误日志，
    便于排查文档解析和AI生成失败。
    """
    log_file = Path(config.LOG_FILE)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    logger.remove()

    logger.add(
        sink=sys.stderr,
        level=config.LOG_LEVEL,
        format=config.LOG_FORMAT,
        colorize=True,
        backtrace=debug,
        diagnose=debug,
    )

    file_options = dict(
        format=config.LOG_FORMAT,
        rotation=config.LOG_ROTATION,
        retention=config.LOG_RETENTION,
        compression="zip",
        encoding="utf-8",
        backtrace=True,
        diagnose=debug,
        enqueue=True,
    )
    logger.add(sink=str(log_file), level=config.LOG_LEVEL, **file_options)
    logger.add(sink=str(_error_log_path(log_file)), level="ERROR", **file_options)

    return logger

# 全局日志实例
logger = setup_logger()

__all__ = ["logger", "setup_logger"]
