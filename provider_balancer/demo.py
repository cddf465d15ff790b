"""
로드밸런서 데모 실행기

헬스 체크를 백그라운드로 돌리면서 일정 간격으로 요청 묶음 배정을
시도하고 결과를 출력합니다.
"""
import argparse
import sys
import time
from typing import Callable, List, Optional

from .balancer import LoadBalancer
from .config import BalancerConfig
from .exceptions import BalancerError
from .logger import LogStage, get_logger, setup_console_logging, setup_file_logging
from .scheduler import HeartbeatScheduler
from .strategies import DispatchStrategy

UNAVAILABLE_MESSAGE = "Service temporarily not available, waiting for providers."

logger = get_logger("demo")


def run_demo(
    balancer: LoadBalancer,
    heartbeat_interval: float,
    rounds: int = 10,
    batch_size: int = 11,
    pause: float = 1.0,
    out: Callable[[str], None] = print
) -> List[Optional[List[str]]]:
    """
    배정 데모 실행

    Args:
        balancer: 대상 로드밸런서
        heartbeat_interval: 헬스 체크 주기 (초)
        rounds: 배정 시도 횟수
        batch_size: 한 번에 들어오는 요청 수
        pause: 시도 간 대기 시간 (초)
        out: 출력 함수

    Returns:
        라운드별 배정 결과 (실패한 라운드는 None)
    """
    results: List[Optional[List[str]]] = []
    with HeartbeatScheduler(balancer, heartbeat_interval):
        for i in range(rounds):
            try:
                assignment = balancer.assign(batch_size)
                out(f"Assignments for {batch_size} incoming requests: {assignment}")
                results.append(assignment)
            except BalancerError as e:
                logger.debug(f"라운드 {i + 1} 배정 실패: {e}")
                out(UNAVAILABLE_MESSAGE)
                results.append(None)
            if pause > 0:
                time.sleep(pause)
    return results


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description='Provider load balancer demo')
    parser.add_argument('--config', help='YAML/JSON config file (default: environment)')
    parser.add_argument('--strategy', choices=['round_robin', 'random', 'both'],
                        help='Dispatch strategy (default: both)')
    parser.add_argument('--pool-size', type=int, help='Number of providers (0-10)')
    parser.add_argument('--interval', type=float, help='Heartbeat interval in seconds')
    parser.add_argument('--rounds', type=int, default=10, help='Number of assignment rounds')
    parser.add_argument('--batch', type=int, default=11, help='Requests per round')
    parser.add_argument('--pause', type=float, default=1.0, help='Seconds between rounds')
    parser.add_argument('--log-level', default='WARNING', help='Console log level')
    parser.add_argument('--log-dir', help='Also write logs to this directory')

    args = parser.parse_args(argv)

    setup_console_logging(args.log_level)
    if args.log_dir:
        setup_file_logging(args.log_dir)

    try:
        if args.config:
            config = BalancerConfig.from_file(args.config)
        else:
            config = BalancerConfig.from_env()
        if args.pool_size is not None:
            config.pool_size = args.pool_size
        if args.interval is not None:
            config.heartbeat_interval = args.interval
        config.validate()
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.strategy in (None, 'both'):
        strategies = [DispatchStrategy.ROUND_ROBIN, DispatchStrategy.RANDOM]
    else:
        strategies = [DispatchStrategy(args.strategy)]

    for strategy in strategies:
        config.strategy = strategy
        print(
            f"\nTesting {strategy.value.replace('_', '-')} load balancer. "
            f"Number of providers: {config.pool_size}. "
            f"Heart beat: every {config.heartbeat_interval:g} seconds."
        )
        with LogStage("데모", strategy=strategy.value, pool_size=config.pool_size):
            balancer = LoadBalancer.from_config(config)
            run_demo(
                balancer,
                config.heartbeat_interval,
                rounds=args.rounds,
                batch_size=args.batch,
                pause=args.pause,
            )
    return 0


if __name__ == "__main__":
    sys.exit(main())
