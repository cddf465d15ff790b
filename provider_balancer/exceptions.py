"""
로드밸런서 예외

생성, 배정 단계에서 호출자에게 동기적으로 전달되는 오류 종류입니다.
코어는 어떤 오류도 내부에서 재시도하지 않습니다.
"""


class BalancerError(Exception):
    """로드밸런서 오류 기본 클래스"""


class InvalidPoolSize(BalancerError, ValueError):
    """풀 크기가 허용 범위를 벗어남"""

    def __init__(self, pool_size, max_size: int):
        self.pool_size = pool_size
        self.max_size = max_size
        super().__init__(
            f"풀 크기는 0 이상 {max_size} 이하의 정수여야 합니다: {pool_size!r}"
        )


class InvalidRequestCount(BalancerError, ValueError):
    """요청 개수가 양의 정수가 아님"""

    def __init__(self, n_tasks):
        self.n_tasks = n_tasks
        super().__init__(f"요청 개수는 양의 정수여야 합니다: {n_tasks!r}")


class CapacityExceeded(BalancerError):
    """요청 개수가 현재 수용량을 초과함"""

    def __init__(self, requested: int, capacity: int):
        self.requested = requested
        self.capacity = capacity
        super().__init__(
            f"요청 {requested}건이 현재 수용량 {capacity}건을 초과합니다"
        )


class NoProvidersAvailable(BalancerError):
    """활성(enabled) 상태의 프로바이더가 없음"""

    def __init__(self, message: str = "사용 가능한 프로바이더가 없습니다"):
        super().__init__(message)
