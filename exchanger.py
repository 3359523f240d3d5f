"""
时间戳交换模块 - 负责与时间服务器完成一次往返通信

协议：
- GET /，请求头 X-Client-Timestamp 携带本地发送时间（毫秒）
- 服务器返回 200，响应体为 "<回显时间戳>,<服务器时间戳>"
- 回显时间戳必须与发送值完全一致，否则视为串包或过期响应

每次调用只发出一个请求，不做任何重试，也不保留调用之间的状态。
"""
import logging
import re
import time
from dataclasses import dataclass
from typing import Callable, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from sync_errors import IntegrityError, TransportError
from sync_params import ClockEndpoint

logger = logging.getLogger(__name__)

TIMESTAMP_HEADER = 'X-Client-Timestamp'

# 十进制整数，不允许空白、正号或下划线
_STAMP_PATTERN = re.compile(r'-?[0-9]+')


def now_ms() -> int:
    """当前本地时间（自 Unix 纪元起的毫秒数）"""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class RoundTripSample:
    """一次往返的时间戳样本"""
    sent: int
    received: int
    remote: int


class TimestampExchanger:
    """
    时间戳交换器

    使用 requests 会话完成 HTTP 往返。会话挂载的适配器显式关闭重试，
    失败一律交由调用方决定是否重新发起。
    """

    def __init__(self, endpoint: ClockEndpoint, timeout: float = 10.0,
                 clock: Callable[[], int] = now_ms,
                 session: Optional[requests.Session] = None):
        """
        Args:
            endpoint: 时间服务器地址
            timeout: 传输层超时（秒），超时视为 TransportError
            clock: 本地时钟，返回毫秒时间戳
            session: 可选的外部会话
        """
        self.endpoint = endpoint
        self.timeout = timeout
        self.clock = clock

        if session is None:
            session = requests.Session()
            adapter = HTTPAdapter(
                max_retries=Retry(total=0, read=False, raise_on_status=False),
                pool_connections=4,
                pool_maxsize=8
            )
            session.mount("http://", adapter)
            session.mount("https://", adapter)
        self.session = session

    def close(self):
        """关闭会话，释放连接"""
        if self.session:
            self.session.close()
            logger.debug("时间戳交换器会话已关闭")

    def exchange(self, sent: Optional[int] = None) -> RoundTripSample:
        """
        执行一次时间戳交换

        Args:
            sent: 发送时间戳（毫秒）。为 None 时在发出请求前立即读取本地时钟。

        Returns:
            RoundTripSample: sent / received 为本地时钟读数，remote 为服务器时间

        Raises:
            TransportError: 连接失败、超时或响应状态码不是 200
            IntegrityError: 回显时间戳不一致或响应体格式错误
        """
        url = self.endpoint.base_url
        if sent is None:
            sent = self.clock()

        try:
            logger.debug(f"发送时间戳: {url}, sent={sent}")
            response = self.session.get(
                url,
                headers={TIMESTAMP_HEADER: str(sent)},
                timeout=self.timeout
            )
            if response.status_code != 200:
                logger.warning(f"时间服务器响应状态码异常: {url}, status={response.status_code}")
                raise TransportError(
                    f"服务器响应不是 200（实际为 {response.status_code}）",
                    reason='status',
                    status_code=response.status_code
                )
            body = response.content
        except requests.exceptions.Timeout as e:
            logger.warning(f"请求超时: {url}, error={e}")
            raise TransportError(f"请求超时: {e}", reason='timeout') from e
        except requests.exceptions.ConnectionError as e:
            logger.warning(f"连接失败: {url}, error={e}")
            raise TransportError(f"连接失败: {e}", reason='connection') from e
        except requests.exceptions.RequestException as e:
            logger.error(f"请求异常: {url}, error={e}")
            raise TransportError(f"请求异常: {e}", reason='request') from e

        received = self.clock()
        remote = self._verify_body(body, sent)

        logger.debug(f"时间戳交换完成: sent={sent}, received={received}, remote={remote}")
        return RoundTripSample(sent=sent, received=received, remote=remote)

    @staticmethod
    def _verify_body(content: bytes, sent: int) -> int:
        """校验响应体（UTF-8 文本）并返回服务器时间戳"""
        try:
            body = content.decode('utf-8')
        except UnicodeDecodeError as e:
            logger.error(f"响应体不是有效的 UTF-8: {content!r}")
            raise IntegrityError(f"响应体不是有效的 UTF-8: {content!r}", expected=sent) from e

        parts = body.split(',')
        if len(parts) != 2:
            logger.error(f"响应体格式错误: {body!r}")
            raise IntegrityError(f"响应体格式错误: {body!r}", expected=sent, received=body)

        if not all(_STAMP_PATTERN.fullmatch(part) for part in parts):
            logger.error(f"响应体无法解析为整数: {body!r}")
            raise IntegrityError(f"响应体无法解析为整数: {body!r}", expected=sent, received=body)

        echoed = int(parts[0])
        remote = int(parts[1])

        if echoed != sent:
            logger.error(f"时间戳校验失败: 发送 {sent}, 回显 {echoed}")
            raise IntegrityError("时间戳校验失败！", expected=sent, received=parts[0])

        return remote
