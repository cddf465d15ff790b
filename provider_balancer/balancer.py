"""
메인 로드밸런서 클래스

고정 크기 프로바이더 풀의 상태를 관리하고, 요청 묶음을 활성 프로바이더에
분배합니다.
"""

import threading
import random
from typing import Any, Callable, Dict, List, Optional, Tuple

from loguru import logger

from .config import BalancerConfig, MAX_POOL_SIZE, DEFAULT_CAPACITY_PER_PROVIDER
from .exceptions import (
    CapacityExceeded,
    InvalidPoolSize,
    InvalidRequestCount,
    NoProvidersAvailable,
)
from .probes import RandomFailureProbe
from .provider import Provider, ProviderState, ProbeFunc
from .strategies import BaseStrategy, DispatchStrategy, get_strategy


# 상태 변경 콜백 (provider, old_state, new_state)
StateChangeCallback = Callable[[Provider, ProviderState, ProviderState], None]


class LoadBalancer:
    """
    클라이언트 측 로드밸런서

    프로바이더별 상태 배열과 enabled 개수 캐시, 전략 커서를 하나의 락으로
    보호합니다. heartbeat()는 주기적으로, assign()은 임의 시점에 서로 다른
    스레드에서 호출될 수 있습니다.
    """

    def __init__(
        self,
        pool_size: int,
        strategy: DispatchStrategy = DispatchStrategy.ROUND_ROBIN,
        probe: Optional[ProbeFunc] = None,
        capacity_per_provider: int = DEFAULT_CAPACITY_PER_PROVIDER,
        rng: Optional[random.Random] = None,
        on_state_change: Optional[StateChangeCallback] = None
    ):
        """
        Args:
            pool_size: 프로바이더 수 (0 이상 MAX_POOL_SIZE 이하)
            strategy: 분배 전략
            probe: 프로바이더 생존 확인 함수 (None이면 모의 프로브)
            capacity_per_provider: 활성 프로바이더 하나가 받을 수 있는 요청 수
            rng: 랜덤 전략용 난수 생성기 (선택)
            on_state_change: 상태 변경 시 호출될 콜백 (선택)
        """
        if (isinstance(pool_size, bool) or not isinstance(pool_size, int)
                or not 0 <= pool_size <= MAX_POOL_SIZE):
            raise InvalidPoolSize(pool_size, MAX_POOL_SIZE)
        if (isinstance(capacity_per_provider, bool)
                or not isinstance(capacity_per_provider, int)
                or capacity_per_provider < 1):
            raise ValueError(
                f"capacity_per_provider는 1 이상의 정수여야 합니다: {capacity_per_provider!r}"
            )

        if probe is None:
            probe = RandomFailureProbe()

        self._providers: List[Provider] = [
            Provider(str(i), probe) for i in range(pool_size)
        ]
        self._states: List[ProviderState] = [ProviderState.ENABLED] * pool_size
        # _states 중 ENABLED 개수 캐시
        self._enabled_count = pool_size

        self._strategy_type = strategy
        if strategy is DispatchStrategy.RANDOM:
            self._strategy: BaseStrategy = get_strategy(strategy, rng=rng)
        else:
            self._strategy = get_strategy(strategy)
        self._capacity_per_provider = capacity_per_provider
        self._on_state_change = on_state_change
        self._lock = threading.RLock()

        logger.debug(
            f"LoadBalancer 생성: strategy={strategy.value}, pool_size={pool_size}, "
            f"capacity_per_provider={capacity_per_provider}"
        )

    @classmethod
    def from_config(
        cls,
        config: BalancerConfig,
        probe: Optional[ProbeFunc] = None,
        **kwargs
    ) -> 'LoadBalancer':
        """
        설정 객체에서 생성

        probe가 없으면 설정의 성공 확률로 모의 프로브를 만듭니다.
        """
        config.validate()
        if probe is None:
            probe = RandomFailureProbe(config.probe_success_rate)
        return cls(
            pool_size=config.pool_size,
            strategy=config.strategy,
            probe=probe,
            capacity_per_provider=config.capacity_per_provider,
            **kwargs
        )

    @classmethod
    def from_env(cls, env_path: Optional[str] = None, **kwargs) -> 'LoadBalancer':
        """환경변수에서 설정 로드 (BalancerConfig.from_env 참고)"""
        return cls.from_config(BalancerConfig.from_env(env_path), **kwargs)

    @property
    def pool_size(self) -> int:
        return len(self._providers)

    @property
    def enabled_count(self) -> int:
        with self._lock:
            return self._enabled_count

    @property
    def capacity(self) -> int:
        """현재 한 번에 배정 가능한 최대 요청 수"""
        with self._lock:
            return self._capacity_per_provider * self._enabled_count

    @property
    def capacity_per_provider(self) -> int:
        return self._capacity_per_provider

    @property
    def strategy_type(self) -> DispatchStrategy:
        return self._strategy_type

    @property
    def providers(self) -> List[Provider]:
        return list(self._providers)

    def states(self) -> List[ProviderState]:
        """상태 배열 스냅샷"""
        with self._lock:
            return list(self._states)

    def heartbeat(self) -> None:
        """
        헬스 체크 1회 수행

        풀 순서대로 모든 프로바이더를 프로브한 뒤, 상태 전이와 enabled 개수
        갱신을 락 안에서 한 번에 반영합니다. 프로브 실패는 오류가 아니라
        상태 머신의 입력일 뿐이며, 이 메서드는 예외를 던지지 않습니다.
        """
        results = [provider.probe() for provider in self._providers]

        changes: List[Tuple[Provider, ProviderState, ProviderState]] = []
        with self._lock:
            for i, ok in enumerate(results):
                old = self._states[i]
                new = old.advance(ok)
                if new is old:
                    continue
                if new is ProviderState.ENABLED:
                    self._enabled_count += 1
                elif old is ProviderState.ENABLED:
                    self._enabled_count -= 1
                self._states[i] = new
                changes.append((self._providers[i], old, new))
            enabled = self._enabled_count

        for provider, old, new in changes:
            if ProviderState.ENABLED in (old, new):
                logger.info(
                    f"프로바이더 {provider.identity()}: {old.value} -> {new.value}"
                )
            else:
                logger.debug(
                    f"프로바이더 {provider.identity()}: {old.value} -> {new.value}"
                )
            self._notify(provider, old, new)

        logger.debug(f"헬스 체크 완료: enabled {enabled}/{self.pool_size}")

    def _notify(self, provider: Provider, old: ProviderState, new: ProviderState):
        """상태 변경 콜백 호출"""
        if not self._on_state_change:
            return
        try:
            self._on_state_change(provider, old, new)
        except Exception:
            logger.exception(f"상태 변경 콜백 오류: provider={provider.identity()}")

    def select_one(self) -> str:
        """
        활성 프로바이더 하나 선택

        Returns:
            선택된 프로바이더 식별자

        Raises:
            NoProvidersAvailable: enabled 상태의 프로바이더가 없을 때
        """
        with self._lock:
            index = self._strategy.select(self._states, self._enabled_count)
            if index is None:
                raise NoProvidersAvailable()
            return self._providers[index].identity()

    def assign(self, n_tasks: int) -> List[str]:
        """
        요청 묶음 배정

        Args:
            n_tasks: 들어온 요청 수 (양의 정수)

        Returns:
            길이 n_tasks의 목록. i번째 항목은 i번째 요청을 처리할
            프로바이더 식별자

        Raises:
            InvalidRequestCount: n_tasks가 양의 정수가 아닐 때
            NoProvidersAvailable: 선택 도중 enabled 프로바이더가 없을 때
            CapacityExceeded: n_tasks가 현재 수용량을 초과할 때
        """
        if isinstance(n_tasks, bool) or not isinstance(n_tasks, int) or n_tasks < 1:
            raise InvalidRequestCount(n_tasks)

        with self._lock:
            # 활성 프로바이더가 0이면 수용량 검사보다 먼저 NoProvidersAvailable
            if self._enabled_count == 0:
                raise NoProvidersAvailable()
            capacity = self._capacity_per_provider * self._enabled_count
            if n_tasks > capacity:
                logger.warning(f"수용량 초과로 배정 거부: 요청 {n_tasks}건, 수용량 {capacity}건")
                raise CapacityExceeded(n_tasks, capacity)

        # 선택 단계마다 락을 잡으므로 중간에 heartbeat가 끼어들 수 있다
        try:
            assignment = [self.select_one() for _ in range(n_tasks)]
        except NoProvidersAvailable:
            logger.warning(f"배정 도중 활성 프로바이더 소진: 요청 {n_tasks}건")
            raise
        return assignment

    def get_stats(self) -> Dict[str, Any]:
        """
        통계 조회

        Returns:
            로드밸런서 상태 정보
        """
        with self._lock:
            providers = [
                {'id': provider.identity(), 'state': state.value}
                for provider, state in zip(self._providers, self._states)
            ]
            enabled = self._enabled_count

        return {
            'strategy': self._strategy_type.value,
            'providers': providers,
            'total_providers': len(providers),
            'enabled_providers': enabled,
            'capacity_per_provider': self._capacity_per_provider,
            'capacity': self._capacity_per_provider * enabled,
        }


def new_round_robin_balancer(pool_size: int, **kwargs) -> LoadBalancer:
    """라운드 로빈 로드밸런서 생성 (LoadBalancer 인자 참고)"""
    return LoadBalancer(pool_size, strategy=DispatchStrategy.ROUND_ROBIN, **kwargs)


def new_random_balancer(pool_size: int, **kwargs) -> LoadBalancer:
    """랜덤 로드밸런서 생성 (LoadBalancer 인자 참고)"""
    return LoadBalancer(pool_size, strategy=DispatchStrategy.RANDOM, **kwargs)
