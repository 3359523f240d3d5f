"""
同步计算模块 - 根据往返样本计算时钟偏移、误差界和可信判定

所有计算使用与参数相同的时间单位（毫秒），每次调用都是样本和参数的纯函数。
"""
import logging
from dataclasses import dataclass
from typing import Dict

from exchanger import RoundTripSample
from sync_errors import TimingAssertionError
from sync_params import SyncParameters

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncReading:
    """
    同步结果

    Attributes:
        error: 偏移估计的误差界
        adjust: 应加到本地时钟上的有符号修正量
        successful: 往返时间是否在超时界限内（不可信的读数同样返回）
    """
    error: float
    adjust: float
    successful: bool

    def as_dict(self) -> Dict:
        return {'error': self.error, 'adjust': self.adjust, 'successful': self.successful}


def calc_half_round_trip(stamp_sent: float, stamp_received: float) -> float:
    return (stamp_received - stamp_sent) / 2


def calculate_adjust(half_round: float, remote_timestamp: float, local_recv_timestamp: float) -> float:
    return (remote_timestamp + half_round) - local_recv_timestamp


def is_reading_successful(half_round: float, timeout_delay: float) -> bool:
    return (2 * half_round) <= timeout_delay


def calculate_read_error(half_round: float, min_reading_delay: float, clock_drift: float) -> float:
    """
    计算误差界

    e = halfRound * (1 + 2ρ) - minReadingDelay，且必须满足 e >= eMin = 3ρ·minReadingDelay。

    Raises:
        TimingAssertionError: e < eMin 时（例如本地时钟回拨导致往返时间为负）
    """
    e = half_round * (1 + (2 * clock_drift)) - min_reading_delay
    e_min = 3 * clock_drift * min_reading_delay
    if e < e_min:
        logger.error(f"误差界断言失败: e={e} < eMin={e_min}, halfRound={half_round}")
        raise TimingAssertionError(f"断言失败: e < eMin ({e} < {e_min})", error=e, e_min=e_min)
    return e


def estimate(sample: RoundTripSample, params: SyncParameters) -> SyncReading:
    """
    根据一次往返样本计算同步结果

    Args:
        sample: 时间戳交换得到的样本
        params: 已校验的同步参数

    Returns:
        SyncReading: 误差界、修正量和可信判定

    Raises:
        TimingAssertionError: 误差界低于理论最小值时
    """
    half_round = calc_half_round_trip(sample.sent, sample.received)
    reading = SyncReading(
        error=calculate_read_error(half_round, params.min_reading_delay, params.clock_drift),
        adjust=calculate_adjust(half_round, sample.remote, sample.received),
        successful=is_reading_successful(half_round, params.timeout_delay),
    )
    if not reading.successful:
        logger.warning(
            f"往返时间 {2 * half_round} 超过超时界限 {params.timeout_delay}，读数不可信"
        )
    return reading
