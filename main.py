"""
主程序 - 时钟同步服务

定期向时间服务器发起一次往返同步并记录结果：
- 从 YAML 配置文件加载参数，支持环境变量覆盖
- 传输和校验失败只记录日志，等待下一个周期重新发起
- 误差界断言失败视为计时模型失效，直接终止服务
- 支持信号触发的优雅退出
"""
import argparse
import logging
import os
import signal
import sys
import time
from datetime import datetime
from typing import Dict, Optional

import yaml

from clock_client import ClockClient
from logger_config import setup_logger
from sync_errors import ConfigurationError, IntegrityError, TimingAssertionError, TransportError
from synchronizer import SyncReading

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.yaml"


def load_config(config_path: str) -> Dict:
    """
    加载配置文件

    Raises:
        FileNotFoundError: 当配置文件不存在时
        yaml.YAMLError: 当配置文件格式错误时
        ValueError: 当配置文件为空时
    """
    if not os.path.exists(config_path):
        raise FileNotFoundError(f"配置文件不存在: {config_path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        config = yaml.safe_load(f)

    if config is None:
        raise ValueError("配置文件为空")
    if not isinstance(config, dict):
        raise ValueError("配置文件顶层必须是字典")
    return config


def apply_env_overrides(config: Dict) -> Dict:
    """使用环境变量覆盖配置，便于在容器或计划任务中传递参数"""
    for key in ('server', 'sync'):
        if config.get(key) is None:
            config[key] = {}
    server_cfg = config['server']
    sync_cfg = config['sync']
    if not isinstance(server_cfg, dict) or not isinstance(sync_cfg, dict):
        return config

    if os.environ.get('CLOCK_SERVER_URL'):
        server_cfg['url'] = os.environ['CLOCK_SERVER_URL']
    if os.environ.get('CLOCK_REQUEST_TIMEOUT'):
        server_cfg['request_timeout'] = float(os.environ['CLOCK_REQUEST_TIMEOUT'])
    if os.environ.get('CLOCK_SYNC_INTERVAL'):
        sync_cfg['interval_seconds'] = float(os.environ['CLOCK_SYNC_INTERVAL'])
    return config


def validate_config(config: Dict):
    """
    验证配置文件的有效性

    只检查结构和类型；参数可行性由 ClockClient 构造时校验。

    Raises:
        ValueError: 当配置验证失败时
    """
    for key in ('server', 'sync'):
        if not isinstance(config.get(key), dict):
            raise ValueError(f"配置文件缺少必要的配置项: {key}")

    server_cfg = config['server']
    if not server_cfg.get('url') or not isinstance(server_cfg['url'], str):
        raise ValueError("server.url 必须是非空字符串")
    timeout = server_cfg.get('request_timeout', 10)
    if not isinstance(timeout, (int, float)) or timeout <= 0:
        raise ValueError("server.request_timeout 必须是正数")

    sync_cfg = config['sync']
    interval = sync_cfg.get('interval_seconds', 60)
    if not isinstance(interval, (int, float)) or interval <= 0:
        raise ValueError("sync.interval_seconds 必须是正数")
    for key in ('target_precision', 'min_reading_delay', 'clock_drift'):
        value = sync_cfg.get(key)
        if value is not None and (isinstance(value, bool) or not isinstance(value, (int, float))):
            raise ValueError(f"sync.{key} 必须是数值")

    logging_cfg = config.get('logging', {})
    if logging_cfg and not isinstance(logging_cfg, dict):
        raise ValueError("logging 配置必须是字典")

    logger.debug("配置文件验证通过")


class SyncService:
    """
    同步服务主类

    负责配置加载、周期性同步调度以及优雅的启动和关闭。
    """

    def __init__(self, config: Dict, client: Optional[ClockClient] = None):
        """
        Args:
            config: 已加载的配置字典
            client: 可选的客户端实例（测试时注入）

        Raises:
            ValueError: 配置验证失败时
            ConfigurationError: 同步参数不可行时
        """
        self.config = apply_env_overrides(config)
        validate_config(self.config)

        server_cfg = self.config['server']
        sync_cfg = self.config['sync']
        self.interval_seconds = sync_cfg.get('interval_seconds', 60)

        if client is None:
            options = {key: sync_cfg.get(key) for key in ('target_precision', 'min_reading_delay', 'clock_drift')}
            client = ClockClient(
                server_cfg['url'],
                options,
                request_timeout=server_cfg.get('request_timeout', 10),
            )
        self.client = client

        self.running = True
        self.start_time = datetime.now()
        self.last_reading: Optional[SyncReading] = None
        self.success_count = 0
        self.failed_count = 0

        logger.info("同步服务初始化完成")

    @classmethod
    def from_file(cls, config_path: str = DEFAULT_CONFIG_PATH) -> 'SyncService':
        return cls(load_config(config_path))

    def install_signal_handlers(self):
        """注册信号处理器（仅在主线程中有效）"""
        if hasattr(signal, 'SIGINT'):
            signal.signal(signal.SIGINT, self._signal_handler)
        if hasattr(signal, 'SIGTERM'):
            signal.signal(signal.SIGTERM, self._signal_handler)

    def _signal_handler(self, signum, frame):
        signal_name = signal.Signals(signum).name if hasattr(signal, 'Signals') else str(signum)
        logger.info(f"接收到信号 {signal_name} ({signum})，准备优雅退出...")
        self.running = False

    def run_once(self) -> Optional[SyncReading]:
        """
        执行一次同步

        Returns:
            SyncReading: 同步结果；传输或校验失败时返回 None

        Raises:
            TimingAssertionError: 计时模型失效，不做降级处理
        """
        try:
            reading = self.client.synchronize()
        except (TransportError, IntegrityError) as e:
            self.failed_count += 1
            logger.error(f"同步失败，本次样本丢弃: {e}")
            return None

        self.success_count += 1
        self.last_reading = reading
        if reading.successful:
            logger.info(f"读数可信: 修正量 {reading.adjust} ms，误差界 ±{reading.error} ms")
        else:
            logger.warning(f"读数未通过可信阈值: 修正量 {reading.adjust} ms，误差界 ±{reading.error} ms")
        return reading

    def run(self):
        """
        运行同步服务

        立即执行一次同步，之后按间隔循环，直到收到退出信号。
        """
        logger.info(f"同步服务启动，目标: {self.client.endpoint.base_url}，间隔: {self.interval_seconds} 秒")
        try:
            self.run_once()
            while self.running:
                # 分段等待，以便能够响应退出信号
                waited = 0.0
                while waited < self.interval_seconds and self.running:
                    step = min(1.0, self.interval_seconds - waited)
                    time.sleep(step)
                    waited += step

                if self.running:
                    self.run_once()
        finally:
            self._cleanup()

        uptime = datetime.now() - self.start_time
        logger.info(f"同步服务已停止，总运行时间: {uptime}，成功 {self.success_count} 次，失败 {self.failed_count} 次")

    def _cleanup(self):
        try:
            self.client.close()
            logger.debug("资源清理完成")
        except Exception as e:
            logger.warning(f"清理资源时发生错误: {e}", exc_info=True)


def main(argv=None):
    """
    主函数

    1. 加载配置并设置日志
    2. 创建同步服务
    3. 执行单次或周期同步
    """
    parser = argparse.ArgumentParser(description='时钟同步服务')
    parser.add_argument('--config', '-c', default=DEFAULT_CONFIG_PATH, help='配置文件路径')
    parser.add_argument('--once', action='store_true', help='只执行一次同步后退出')
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except FileNotFoundError as e:
        print(f"错误: {e}")
        sys.exit(1)
    except yaml.YAMLError as e:
        print(f"错误: 配置文件格式错误: {e}")
        sys.exit(1)
    except ValueError as e:
        print(f"错误: {e}")
        sys.exit(1)

    logging_cfg = config.get('logging') or {}
    setup_logger(
        log_level=logging_cfg.get('level', 'INFO'),
        log_file=logging_cfg.get('file', 'logs/clock_sync.log'),
        max_bytes=logging_cfg.get('max_bytes', 10485760),
        backup_count=logging_cfg.get('backup_count', 5)
    )

    try:
        service = SyncService(config)
    except ConfigurationError as e:
        logger.error(f"同步参数不可行: {e}")
        sys.exit(1)
    except ValueError as e:
        logger.error(f"配置错误: {e}")
        sys.exit(1)

    try:
        if args.once:
            try:
                reading = service.run_once()
            finally:
                service._cleanup()
            sys.exit(0 if reading is not None else 2)

        service.install_signal_handlers()
        service.run()
    except TimingAssertionError as e:
        logger.critical(f"计时模型失效，服务终止: {e}")
        sys.exit(3)
    except KeyboardInterrupt:
        logger.info("程序被用户中断")
        sys.exit(0)


if __name__ == "__main__":
    main()
