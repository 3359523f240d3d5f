"""
时钟同步客户端 - 基于单次往返（Cristian 算法变体）估计本地与远端时钟的偏移

用法：
    with ClockClient("http://time.example.com:5579") as client:
        reading = client.synchronize()
        if reading.successful:
            corrected = now_ms() + reading.adjust

构造时即完成参数校验，不可行的配置会直接抛出 ConfigurationError。
客户端本身不修改系统时钟，不重试，也不保存历史读数。
"""
import logging
from typing import Any, Callable, Mapping, Optional

import requests

from exchanger import RoundTripSample, TimestampExchanger, now_ms
from sync_params import ClockEndpoint, SyncParameters, build_sync_parameters, parse_endpoint
from synchronizer import SyncReading, estimate

logger = logging.getLogger(__name__)


class ClockClient:
    """
    时钟同步客户端

    构造完成后参数和地址均不可变，多个线程可以并发调用 synchronize()，
    每次调用各自持有自己的样本和结果。
    """

    def __init__(self, url: str, options: Optional[Mapping[str, Any]] = None,
                 request_timeout: float = 10.0,
                 clock: Callable[[], int] = now_ms,
                 session: Optional[requests.Session] = None):
        """
        初始化客户端

        Args:
            url: 时间服务器地址，未指定端口时使用 5579
            options: 可选配置 targetPrecision / minReadingDelay / clockDrift
            request_timeout: 传输层超时（秒）
            clock: 本地时钟（毫秒），便于测试注入
            session: 可选的 requests 会话

        Raises:
            ConfigurationError: 地址无效或参数不可行时
        """
        self.endpoint: ClockEndpoint = parse_endpoint(url)
        self.params: SyncParameters = build_sync_parameters(options)
        self._exchanger = TimestampExchanger(
            self.endpoint,
            timeout=request_timeout,
            clock=clock,
            session=session,
        )
        logger.debug(f"时钟客户端初始化完成: {self.endpoint.base_url}, params={self.params}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self):
        """关闭底层会话"""
        self._exchanger.close()

    @property
    def server_host(self) -> str:
        return self.endpoint.host

    @property
    def server_port(self) -> int:
        return self.endpoint.port

    @property
    def target_precision(self) -> float:
        return self.params.target_precision

    @property
    def min_reading_delay(self) -> float:
        return self.params.min_reading_delay

    @property
    def clock_drift(self) -> float:
        return self.params.clock_drift

    @property
    def timeout_delay(self) -> float:
        return self.params.timeout_delay

    @property
    def session(self) -> requests.Session:
        return self._exchanger.session

    def exchange(self, sent: Optional[int] = None) -> RoundTripSample:
        """
        执行一次原始时间戳交换，不做误差和偏移计算

        Raises:
            TransportError, IntegrityError
        """
        return self._exchanger.exchange(sent)

    def synchronize(self) -> SyncReading:
        """
        执行一次同步

        计算始终基于样本中实际发送的时间戳。交换失败时直接抛出，不会产生部分结果。

        Returns:
            SyncReading: 操作成功但 successful 为 False 时表示读数未通过可信阈值

        Raises:
            TransportError: 网络层失败
            IntegrityError: 回显时间戳校验失败
            TimingAssertionError: 误差界低于理论最小值
        """
        sample = self.exchange()
        reading = estimate(sample, self.params)
        logger.info(
            f"同步完成: adjust={reading.adjust}, error={reading.error}, "
            f"successful={reading.successful}, rtt={sample.received - sample.sent}"
        )
        return reading
