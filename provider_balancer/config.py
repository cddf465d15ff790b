"""
로드밸런서 설정

환경변수(.env 포함) 또는 YAML/JSON 파일에서 설정을 읽습니다.
"""

import os
import json
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional
import yaml
from dotenv import load_dotenv
from loguru import logger

from .strategies import DispatchStrategy


MAX_POOL_SIZE = 10
DEFAULT_CAPACITY_PER_PROVIDER = 3


@dataclass
class BalancerConfig:
    """로드밸런서 설정값"""
    pool_size: int = 7
    strategy: DispatchStrategy = DispatchStrategy.ROUND_ROBIN
    capacity_per_provider: int = DEFAULT_CAPACITY_PER_PROVIDER  # 프로바이더당 최대 동시 요청
    heartbeat_interval: float = 2.0                             # 헬스 체크 주기 (초)
    probe_success_rate: float = 0.8                             # 모의 프로브 성공 확률

    def __post_init__(self):
        """전략 이름 정규화"""
        if isinstance(self.strategy, str):
            self.strategy = _parse_strategy(self.strategy)

    def validate(self) -> 'BalancerConfig':
        """값 범위 검사, 잘못된 값이면 ValueError"""
        if (isinstance(self.pool_size, bool) or not isinstance(self.pool_size, int)
                or not 0 <= self.pool_size <= MAX_POOL_SIZE):
            raise ValueError(
                f"pool_size는 0 이상 {MAX_POOL_SIZE} 이하여야 합니다: {self.pool_size!r}"
            )
        if self.capacity_per_provider < 1:
            raise ValueError(
                f"capacity_per_provider는 1 이상이어야 합니다: {self.capacity_per_provider!r}"
            )
        if self.heartbeat_interval <= 0:
            raise ValueError(
                f"heartbeat_interval은 0보다 커야 합니다: {self.heartbeat_interval!r}"
            )
        if not 0.0 <= self.probe_success_rate <= 1.0:
            raise ValueError(
                f"probe_success_rate는 0과 1 사이여야 합니다: {self.probe_success_rate!r}"
            )
        return self

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['strategy'] = self.strategy.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BalancerConfig':
        """딕셔너리에서 생성 (없는 키는 기본값)"""
        defaults = cls()
        heartbeat = data.get('heartbeat')
        if heartbeat is None:
            heartbeat = {}
        if not isinstance(heartbeat, dict):
            raise ValueError(f"heartbeat는 매핑이어야 합니다: {heartbeat!r}")
        try:
            config = cls(
                pool_size=_parse_int(data, 'pool_size', defaults.pool_size),
                strategy=_parse_strategy(data.get('strategy', defaults.strategy.value)),
                capacity_per_provider=_parse_int(
                    data, 'capacity_per_provider', defaults.capacity_per_provider
                ),
                heartbeat_interval=_parse_float(
                    heartbeat, 'interval',
                    _parse_float(data, 'heartbeat_interval', defaults.heartbeat_interval)
                ),
                probe_success_rate=_parse_float(
                    data, 'probe_success_rate', defaults.probe_success_rate
                ),
            )
        except (TypeError, ValueError) as e:
            raise ValueError(f"설정 값 형식이 잘못되었습니다: {e}") from e
        return config.validate()

    @classmethod
    def from_env(cls, env_path: Optional[str] = None) -> 'BalancerConfig':
        """
        환경변수에서 설정 로드

        환경변수:
            BALANCER_POOL_SIZE: 프로바이더 수 (0~10)
            BALANCER_STRATEGY: 분배 전략 (round_robin, random)
            BALANCER_CAPACITY: 프로바이더당 수용 요청 수
            BALANCER_HEARTBEAT_INTERVAL: 헬스 체크 주기 (초)
            BALANCER_PROBE_SUCCESS_RATE: 모의 프로브 성공 확률
        """
        if env_path:
            load_dotenv(env_path)
        else:
            load_dotenv()

        data: Dict[str, Any] = {}
        env_keys = {
            'BALANCER_POOL_SIZE': 'pool_size',
            'BALANCER_STRATEGY': 'strategy',
            'BALANCER_CAPACITY': 'capacity_per_provider',
            'BALANCER_HEARTBEAT_INTERVAL': 'heartbeat_interval',
            'BALANCER_PROBE_SUCCESS_RATE': 'probe_success_rate',
        }
        for env_key, field_name in env_keys.items():
            value = os.getenv(env_key, '').strip()
            if value:
                data[field_name] = value

        logger.debug(f"환경변수 설정 로드: {data}")
        return cls.from_dict(data)

    @classmethod
    def from_file(cls, config_path: str) -> 'BalancerConfig':
        """
        YAML/JSON 설정 파일에서 로드

        Args:
            config_path: 설정 파일 경로 (.json이면 JSON, 그 외 YAML)
        """
        with open(config_path, 'r', encoding='utf-8') as f:
            if config_path.endswith('.json'):
                data = json.load(f)
            else:
                try:
                    data = yaml.safe_load(f)
                except yaml.YAMLError as e:
                    raise ValueError(f"YAML 설정 파일 파싱 실패: {config_path}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ValueError(f"설정 파일 최상위는 매핑이어야 합니다: {config_path}")

        logger.debug(f"설정 파일 로드: {config_path}")
        return cls.from_dict(data)


def _parse_strategy(value) -> DispatchStrategy:
    if isinstance(value, DispatchStrategy):
        return value
    try:
        return DispatchStrategy(str(value).lower())
    except ValueError:
        raise ValueError(f"지원하지 않는 전략입니다: {value}")


def _parse_int(data: Dict[str, Any], key: str, default: int) -> int:
    """정수 또는 정수 문자열만 허용 (bool, 실수는 거부)"""
    value = data.get(key, default)
    if isinstance(value, bool):
        raise ValueError(f"{key}는 정수여야 합니다: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            raise ValueError(f"{key}는 정수여야 합니다: {value!r}")
    raise ValueError(f"{key}는 정수여야 합니다: {value!r}")


def _parse_float(data: Dict[str, Any], key: str, default: float) -> float:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ValueError(f"{key}는 숫자여야 합니다: {value!r}")
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{key}는 숫자여야 합니다: {value!r}")
