"""
同步参数模块 - 负责目标地址解析和参数可行性校验

在任何网络通信之前完成：
- 解析目标 URL，得到主机和端口（未指定端口时使用 5579）
- 根据精度、最小读取延迟和时钟漂移推导上界和超时
- 上界小于最小上界时立即拒绝，不会产生处于无效状态的参数对象
"""
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional
from urllib.parse import urlsplit

from sync_errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_PORT = 5579
DEFAULT_TARGET_PRECISION = 50
DEFAULT_MIN_READING_DELAY = 1
DEFAULT_CLOCK_DRIFT = 0

# 选项名 -> 参数名，同时接受驼峰和下划线两种写法
_OPTION_ALIASES = {
    'targetPrecision': 'target_precision',
    'target_precision': 'target_precision',
    'minReadingDelay': 'min_reading_delay',
    'min_reading_delay': 'min_reading_delay',
    'clockDrift': 'clock_drift',
    'clock_drift': 'clock_drift',
}


@dataclass(frozen=True)
class ClockEndpoint:
    """时间服务器地址"""
    host: str
    port: int = DEFAULT_PORT
    scheme: str = 'http'

    @property
    def base_url(self) -> str:
        host = f"[{self.host}]" if ':' in self.host else self.host
        return f"{self.scheme}://{host}:{self.port}/"


def calc_upper_bound(target_precision: float, min_reading_delay: float, clock_drift: float) -> float:
    return (1 - (2 * clock_drift)) * (target_precision + min_reading_delay)


def calc_min_upper_bound(min_reading_delay: float, clock_drift: float) -> float:
    return min_reading_delay * (1 + clock_drift)


def calc_timeout_delay(upper_bound: float) -> float:
    return 2 * upper_bound


def verify_upper_bound(upper_bound: float, min_upper_bound: float) -> bool:
    return upper_bound >= min_upper_bound


def _check_non_negative(name: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError(f"参数 {name} 必须是数值: {value!r}")
    if not math.isfinite(value):
        raise ConfigurationError(f"参数 {name} 必须是有限数值: {value!r}")
    if value < 0:
        raise ConfigurationError(f"参数 {name} 不能为负数: {value!r}")


@dataclass(frozen=True)
class SyncParameters:
    """
    同步参数（不可变）

    upper_bound / min_upper_bound / timeout_delay 在创建时推导一次，之后不再变化。
    不可行的组合在 __post_init__ 中直接抛出 ConfigurationError。
    """
    target_precision: float = DEFAULT_TARGET_PRECISION
    min_reading_delay: float = DEFAULT_MIN_READING_DELAY
    clock_drift: float = DEFAULT_CLOCK_DRIFT
    upper_bound: float = field(init=False)
    min_upper_bound: float = field(init=False)
    timeout_delay: float = field(init=False)

    def __post_init__(self):
        _check_non_negative('targetPrecision', self.target_precision)
        _check_non_negative('minReadingDelay', self.min_reading_delay)
        _check_non_negative('clockDrift', self.clock_drift)

        upper_bound = calc_upper_bound(self.target_precision, self.min_reading_delay, self.clock_drift)
        min_upper_bound = calc_min_upper_bound(self.min_reading_delay, self.clock_drift)

        if not verify_upper_bound(upper_bound, min_upper_bound):
            raise ConfigurationError(
                f"时钟客户端参数配置错误: upperBound={upper_bound} < minUpperBound={min_upper_bound}，请检查客户端参数",
                upper_bound=upper_bound,
                min_upper_bound=min_upper_bound,
            )

        object.__setattr__(self, 'upper_bound', upper_bound)
        object.__setattr__(self, 'min_upper_bound', min_upper_bound)
        object.__setattr__(self, 'timeout_delay', calc_timeout_delay(upper_bound))


def build_sync_parameters(options: Optional[Mapping[str, Any]] = None) -> SyncParameters:
    """
    根据选项构造同步参数

    Args:
        options: 可选配置，支持 targetPrecision / minReadingDelay / clockDrift
            （也接受 target_precision 等下划线写法）。值为 None 或缺省时使用默认值，
            显式的 0 会被保留。

    Returns:
        SyncParameters: 已完成推导和校验的参数

    Raises:
        ConfigurationError: 选项未知、数值非法或上界不可行时
    """
    values = {}
    for key, value in (options or {}).items():
        name = _OPTION_ALIASES.get(key)
        if name is None:
            raise ConfigurationError(f"未知的配置项: {key}")
        if value is None:
            continue
        if name in values and values[name] != value:
            raise ConfigurationError(f"配置项重复且取值冲突: {key}")
        values[name] = value

    params = SyncParameters(**values)
    logger.info(
        f"timeoutDelay={params.timeout_delay}, minUB={params.min_upper_bound}. "
        f"请调整参数使两者尽可能接近"
    )
    return params


def parse_endpoint(url: str) -> ClockEndpoint:
    """
    解析目标 URL

    Args:
        url: 形如 http://host[:port] 的地址

    Returns:
        ClockEndpoint: 未指定端口时使用 5579

    Raises:
        ConfigurationError: URL 无法解析、协议不支持或缺少主机名时
    """
    if not url or not isinstance(url, str):
        raise ConfigurationError(f"无效的服务器地址: {url!r}")

    parts = urlsplit(url.strip())
    if parts.scheme not in ('http', 'https'):
        raise ConfigurationError(f"不支持的协议: {url}")
    if not parts.hostname:
        raise ConfigurationError(f"服务器地址缺少主机名: {url}")

    try:
        port = parts.port
    except ValueError as e:
        raise ConfigurationError(f"无效的端口: {url}") from e

    return ClockEndpoint(host=parts.hostname, port=port or DEFAULT_PORT, scheme=parts.scheme)
