"""
헬스 체크 스케줄러

백그라운드 스레드에서 LoadBalancer.heartbeat()를 주기적으로 호출합니다.
"""

import threading
from typing import Optional

from loguru import logger

from .balancer import LoadBalancer


class HeartbeatScheduler:
    """
    주기적 헬스 체크 실행기

    시작 즉시 한 번 헬스 체크를 수행하고, 이후 interval 초마다 반복합니다.
    """

    def __init__(self, balancer: LoadBalancer, interval: float = 2.0):
        """
        Args:
            balancer: 헬스 체크 대상 로드밸런서
            interval: 헬스 체크 주기 (초)
        """
        if interval <= 0:
            raise ValueError(f"interval은 0보다 커야 합니다: {interval}")
        self.balancer = balancer
        self.interval = interval

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._passes = 0

    @property
    def is_running(self) -> bool:
        return (self._thread is not None and self._thread.is_alive()
                and not self._stop_event.is_set())

    @property
    def passes(self) -> int:
        """지금까지 수행한 헬스 체크 횟수"""
        return self._passes

    def _run(self, stop_event: threading.Event):
        """백그라운드 스레드 실행 (실행마다 자기 stop_event를 가짐)"""
        while not stop_event.is_set():
            try:
                self.balancer.heartbeat()
            except Exception:
                logger.exception("헬스 체크 실행 중 오류")
            self._passes += 1

            # 인터벌 동안 대기 (stop 시 즉시 깨어남)
            stop_event.wait(self.interval)

    def start(self):
        """백그라운드 헬스 체크 시작"""
        if self.is_running:
            return

        # 이전 스레드가 아직 종료 중이어도 그 스레드의 이벤트는 set 상태로 남는다
        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._run, args=(self._stop_event,), name="heartbeat", daemon=True
        )
        self._thread.start()
        logger.debug(f"헬스 체크 시작: interval={self.interval}초")

    def stop(self, timeout: float = 2.0):
        """헬스 체크 중지"""
        self._stop_event.set()
        if not self._thread:
            return
        self._thread.join(timeout=timeout)
        if self._thread.is_alive():
            logger.warning(f"헬스 체크 스레드가 {timeout}초 안에 종료되지 않음")
            return
        self._thread = None
        logger.debug(f"헬스 체크 중지: 총 {self._passes}회 수행")

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False
