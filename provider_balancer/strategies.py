"""
분배 전략

활성(enabled) 프로바이더 중 하나를 고르는 알고리즘을 구현합니다.
전략 객체 자체는 락을 갖지 않으며, 호출하는 LoadBalancer가 풀 락을
잡은 상태에서 select()를 호출합니다.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional, Sequence
import random

from .provider import ProviderState


class DispatchStrategy(Enum):
    """분배 전략 열거형"""
    ROUND_ROBIN = "round_robin"       # 순차 분배
    RANDOM = "random"                 # 랜덤 선택


class BaseStrategy(ABC):
    """분배 전략 기본 클래스"""

    @abstractmethod
    def select(
        self,
        states: Sequence[ProviderState],
        enabled_count: int
    ) -> Optional[int]:
        """
        다음 요청을 처리할 프로바이더 선택

        Args:
            states: 풀 순서대로 정렬된 프로바이더 상태 목록
            enabled_count: states 중 ENABLED 개수 (캐시 값)

        Returns:
            선택된 프로바이더의 풀 인덱스, 활성 프로바이더가 없으면 None
        """
        pass


class RoundRobinStrategy(BaseStrategy):
    """
    라운드 로빈 전략

    커서를 한 칸씩 전진시키며 enabled 상태를 만날 때까지 건너뜁니다.
    비활성 프로바이더는 다시 enabled가 될 때까지 순회에서 빠집니다.
    """

    def __init__(self):
        # 가장 최근에 반환한 인덱스 (-1은 첫 슬롯 이전)
        self._cursor = -1

    @property
    def cursor(self) -> int:
        return self._cursor

    def select(self, states, enabled_count):
        if enabled_count == 0 or not states:
            return None

        size = len(states)
        cursor = self._cursor
        for _ in range(size):
            cursor = (cursor + 1) % size
            if states[cursor] is ProviderState.ENABLED:
                self._cursor = cursor
                return cursor
        # 캐시가 실제 상태와 어긋난 경우
        return None


class RandomStrategy(BaseStrategy):
    """
    랜덤 전략

    풀 전체에서 균등하게 인덱스를 뽑아 enabled 상태가 나올 때까지
    반복합니다. 기대 시도 횟수는 pool_size / enabled_count 입니다.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()

    def select(self, states, enabled_count):
        if enabled_count == 0 or not states:
            return None

        size = len(states)
        while True:
            index = self._rng.randrange(size)
            if states[index] is ProviderState.ENABLED:
                return index


# 전략 매핑
_STRATEGY_MAP = {
    DispatchStrategy.ROUND_ROBIN: RoundRobinStrategy,
    DispatchStrategy.RANDOM: RandomStrategy,
}


def get_strategy(strategy: DispatchStrategy, **kwargs) -> BaseStrategy:
    """
    전략 열거형에서 전략 인스턴스 생성

    Args:
        strategy: 분배 전략 열거형
        **kwargs: 전략 생성자 인자 (예: RandomStrategy의 rng)

    Returns:
        해당 전략의 인스턴스
    """
    strategy_class = _STRATEGY_MAP.get(strategy)
    if not strategy_class:
        raise ValueError(f"지원하지 않는 전략입니다: {strategy}")
    return strategy_class(**kwargs)


def get_strategy_by_name(name: str, **kwargs) -> BaseStrategy:
    """
    전략 이름에서 전략 인스턴스 생성

    Args:
        name: 전략 이름 (round_robin, random)
    """
    try:
        strategy = DispatchStrategy(name.lower())
    except ValueError:
        raise ValueError(f"지원하지 않는 전략입니다: {name}")
    return get_strategy(strategy, **kwargs)
