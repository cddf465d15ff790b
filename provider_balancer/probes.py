"""
프로브 구현

LoadBalancer에 주입할 수 있는 생존 확인 함수들입니다. 코어는 어떤
구현이든 `(provider_id) -> bool` 형태로만 다룹니다.
"""

import random
from typing import Callable, Optional, Union
import requests
from loguru import logger


def always_up(provider_id: str) -> bool:
    return True


def always_down(provider_id: str) -> bool:
    return False


class RandomFailureProbe:
    """
    모의 프로브

    실제 네트워크 없이 확인 시마다 일정 확률로 실패합니다.
    기본값은 20% 확률로 실패합니다.
    """

    def __init__(self, success_rate: float = 0.8, rng: Optional[random.Random] = None):
        if not 0.0 <= success_rate <= 1.0:
            raise ValueError(f"success_rate는 0과 1 사이여야 합니다: {success_rate}")
        self.success_rate = success_rate
        self._rng = rng or random.Random()

    def __call__(self, provider_id: str) -> bool:
        return self._rng.random() < self.success_rate


class HttpProbe:
    """
    HTTP 헬스 체크 프로브

    프로바이더 식별자로 헬스 체크 URL을 만들어 GET 요청을 보냅니다.
    타임아웃, 연결 실패, 예상치 못한 상태 코드는 모두 False 입니다.
    """

    def __init__(
        self,
        url_for: Union[str, Callable[[str], str]],
        timeout: float = 5.0,
        expected_status: int = 200,
        api_key: Optional[str] = None
    ):
        """
        Args:
            url_for: '{id}' 자리표시자를 포함한 URL 템플릿 또는
                식별자를 URL로 바꾸는 함수
            timeout: 요청 타임아웃 (초)
            expected_status: 정상으로 판단할 HTTP 상태 코드
            api_key: Bearer 토큰 (선택)
        """
        self.url_for = url_for
        self.timeout = timeout
        self.expected_status = expected_status
        self.api_key = api_key

    def _url(self, provider_id: str) -> str:
        if callable(self.url_for):
            return self.url_for(provider_id)
        return self.url_for.format(id=provider_id)

    def __call__(self, provider_id: str) -> bool:
        url = self._url(provider_id)
        headers = {}
        if self.api_key:
            headers['Authorization'] = f'Bearer {self.api_key}'

        try:
            response = requests.get(url, headers=headers, timeout=self.timeout)
        except requests.Timeout:
            logger.debug(f"헬스 체크 타임아웃 ({self.timeout}초): {url}")
            return False
        except requests.ConnectionError:
            logger.debug(f"헬스 체크 연결 실패: {url}")
            return False
        except requests.RequestException as e:
            logger.debug(f"헬스 체크 실패: {url} - {e}")
            return False

        if response.status_code != self.expected_status:
            logger.debug(f"헬스 체크 상태 코드 {response.status_code}: {url}")
            return False
        return True
