"""
Provider Load Balancer (provider_balancer)

고정 크기 프로바이더 풀의 헬스 상태를 추적하고, 요청 묶음을 활성
프로바이더에 라운드 로빈 또는 랜덤으로 분배하는 로드밸런서 모듈입니다.
"""

from .exceptions import (
    BalancerError,
    InvalidPoolSize,
    InvalidRequestCount,
    CapacityExceeded,
    NoProvidersAvailable,
)
from .provider import Provider, ProviderState
from .strategies import DispatchStrategy, get_strategy, get_strategy_by_name
from .config import BalancerConfig, MAX_POOL_SIZE
from .balancer import LoadBalancer, new_round_robin_balancer, new_random_balancer
from .probes import RandomFailureProbe, HttpProbe, always_up, always_down
from .scheduler import HeartbeatScheduler

__all__ = [
    'BalancerError',
    'InvalidPoolSize',
    'InvalidRequestCount',
    'CapacityExceeded',
    'NoProvidersAvailable',
    'Provider',
    'ProviderState',
    'DispatchStrategy',
    'get_strategy',
    'get_strategy_by_name',
    'BalancerConfig',
    'MAX_POOL_SIZE',
    'LoadBalancer',
    'new_round_robin_balancer',
    'new_random_balancer',
    'RandomFailureProbe',
    'HttpProbe',
    'always_up',
    'always_down',
    'HeartbeatScheduler',
]
