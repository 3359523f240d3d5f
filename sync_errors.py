"""
时钟同步异常定义

异常分类：
- ConfigurationError: 构造时参数不可行，客户端对象不会被创建
- TransportError: 网络层失败（DNS、连接拒绝、超时、非 200 状态码）
- IntegrityError: 服务器回显的时间戳与发送的不一致，或响应体格式错误
- TimingAssertionError: 误差界低于理论最小值，说明计时模型本身已失效
"""
from typing import Optional


class ClockSyncError(Exception):
    """时钟同步异常基类"""


class ConfigurationError(ClockSyncError, ValueError):
    """参数配置不可行"""

    def __init__(self, message: str, upper_bound: Optional[float] = None,
                 min_upper_bound: Optional[float] = None):
        super().__init__(message)
        self.upper_bound = upper_bound
        self.min_upper_bound = min_upper_bound


class TransportError(ClockSyncError):
    """
    网络传输异常

    Attributes:
        reason: 失败类别 ('status', 'connection', 'timeout', 'request')
        status_code: 非 200 响应时的状态码，其余情况为 None
    """

    def __init__(self, message: str, reason: str = "request",
                 status_code: Optional[int] = None):
        super().__init__(message)
        self.reason = reason
        self.status_code = status_code


class IntegrityError(ClockSyncError):
    """时间戳校验失败"""

    def __init__(self, message: str, expected: Optional[int] = None,
                 received: Optional[str] = None):
        super().__init__(message)
        self.expected = expected
        self.received = received


class TimingAssertionError(ClockSyncError):
    """误差界断言失败（e < eMin），不应被捕获或降级处理"""

    def __init__(self, message: str, error: float, e_min: float):
        super().__init__(message)
        self.error = error
        self.e_min = e_min
