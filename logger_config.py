"""
日志配置模块 - 负责配置同步服务的日志输出
"""
import logging
import logging.handlers
from pathlib import Path
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def setup_logger(log_level: str = "INFO", log_file: Optional[str] = "logs/clock_sync.log",
                 max_bytes: int = 10485760, backup_count: int = 5) -> logging.Logger:
    """
    配置日志系统

    各模块使用 logging.getLogger(__name__)，因此处理器挂在根 logger 上。

    Args:
        log_level: 日志级别 (DEBUG, INFO, WARNING, ERROR)
        log_file: 日志文件路径，为空时只输出到控制台
        max_bytes: 日志文件最大大小（字节）
        backup_count: 日志文件备份数量

    Returns:
        配置好的根 Logger
    """
    logger = logging.getLogger()
    logger.setLevel(getattr(logging, str(log_level).upper(), logging.INFO))

    # 重复调用时避免处理器叠加
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        if log_path.parent != Path('.'):
            log_path.parent.mkdir(parents=True, exist_ok=True)

        # 文件处理器（带轮转）
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding='utf-8'
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    # 第三方库的连接池日志过于冗长
    logging.getLogger('urllib3').setLevel(logging.WARNING)

    return logger
