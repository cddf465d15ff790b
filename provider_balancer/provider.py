"""
프로바이더와 상태 머신

프로바이더 식별자와 헬스 프로브, 그리고 프로바이더별 3단계 상태
(disabled → ready → enabled)를 정의합니다.
"""

from enum import Enum
from typing import Callable, Optional

from loguru import logger


# 프로바이더 식별자를 받아 생존 여부를 반환하는 함수
ProbeFunc = Callable[[str], bool]


class ProviderState(Enum):
    """프로바이더 헬스 상태"""
    DISABLED = "disabled"   # 트래픽 제외
    READY = "ready"         # 복구 중 (한 번 더 통과하면 enabled)
    ENABLED = "enabled"     # 트래픽 수신 가능

    def advance(self, ok: bool) -> 'ProviderState':
        """
        프로브 결과에 따른 다음 상태

        통과 시 한 단계씩 복구하고, 실패 시 어느 상태에서든 즉시 disabled로
        떨어집니다.
        """
        if not ok:
            return ProviderState.DISABLED
        if self is ProviderState.DISABLED:
            return ProviderState.READY
        return ProviderState.ENABLED


class Provider:
    """
    단일 백엔드 프로바이더

    식별자는 생성 후 바뀌지 않으며, 생존 확인은 주입된 프로브 함수에
    위임합니다.
    """

    __slots__ = ('_id', '_probe')

    def __init__(self, provider_id: str, probe: Optional[ProbeFunc] = None):
        self._id = str(provider_id)
        self._probe = probe

    def identity(self) -> str:
        return self._id

    def probe(self) -> bool:
        """
        생존 확인

        다운은 False 반환으로만 표현됩니다. 주입된 프로브가 예외를 던지면
        경고를 남기고 실패로 처리합니다.
        """
        if self._probe is None:
            return True
        try:
            return bool(self._probe(self._id))
        except Exception as e:
            logger.warning(f"프로바이더 {self._id} 프로브 오류, 실패로 처리: {e}")
            return False

    def __repr__(self) -> str:
        return f"Provider({self._id!r})"
