"""
Loguru 기반 로깅 설정
파일/함수/라인 정보를 포함한 VSCode 클릭 가능 포맷

라이브러리 모듈은 `from loguru import logger`만 사용하고, 핸들러 구성은
데모 실행처럼 프로세스 진입점에서 이 모듈의 함수로 합니다.
"""
import sys
from pathlib import Path
from loguru import logger

# =============================================================================
# 포맷 설정
# =============================================================================

# 콘솔용 포맷 (컬러 + VSCode 클릭 가능 - file.path:line 형식)
CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <7}</level> | "
    "<cyan>{file.path}</cyan>:<cyan>{line}</cyan> in <cyan>{function}()</cyan> | "
    "<level>{message}</level>"
)

# 파일용 포맷 (플레인 텍스트 + VSCode 클릭 가능)
FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss} | "
    "{level: <7} | "
    "{file.path}:{line} in {function}() | "
    "{message}"
)


def setup_console_logging(level: str = "INFO") -> int:
    """
    콘솔 로깅 설정

    기존 핸들러를 모두 제거하고 stderr 핸들러 하나만 등록합니다.

    Returns:
        추가된 핸들러 ID
    """
    logger.remove()
    return logger.add(
        sys.stderr,
        format=CONSOLE_FORMAT,
        level=level.upper(),
        colorize=True,
    )


def setup_file_logging(
    log_dir: str = "./logs",
    level: str = "DEBUG",
    rotation: str = "1 day",
    retention: str = "7 days"
) -> int:
    """
    파일 로깅 설정

    Args:
        log_dir: 로그 디렉토리 경로
        level: 로그 레벨
        rotation: 로테이션 주기
        retention: 보관 기간

    Returns:
        추가된 핸들러 ID
    """
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    handler_id = logger.add(
        str(log_path / "{time:YYYY-MM-DD}_balancer.log"),
        format=FILE_FORMAT,
        level=level.upper(),
        rotation=rotation,
        retention=retention,
        encoding="utf-8",
    )

    logger.info(f"파일 로깅 시작: {log_path}")
    return handler_id


def get_logger(module_name: str = None):
    """
    모듈별 로거 반환

    사용 예:
        logger = get_logger("demo")
        logger.info("배정 시작")
    """
    if module_name:
        return logger.bind(module=module_name)
    return logger


class LogStage:
    """
    단계 추적 컨텍스트 매니저

    사용 예:
        with LogStage("라운드 로빈 데모", pool_size=7):
            ...
    """

    def __init__(self, stage_name: str, **context):
        self.stage_name = stage_name
        self.context = context

    def __enter__(self):
        context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
        if context_str:
            logger.info(f"[시작] {self.stage_name} ({context_str})")
        else:
            logger.info(f"[시작] {self.stage_name}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type:
            logger.error(f"[실패] {self.stage_name}: {exc_val}")
        else:
            logger.success(f"[완료] {self.stage_name}")
        return False


__all__ = [
    "logger",
    "get_logger",
    "setup_console_logging",
    "setup_file_logging",
    "LogStage",
    "CONSOLE_FORMAT",
    "FILE_FORMAT",
]
