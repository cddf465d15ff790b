"""
프로브, 설정, 스케줄러, 데모 실행기 테스트
"""

import json
import random
import threading
import time

import pytest
import requests
from unittest.mock import patch, MagicMock

from provider_balancer import (
    BalancerConfig,
    DispatchStrategy,
    HeartbeatScheduler,
    HttpProbe,
    LoadBalancer,
    ProviderState,
    RandomFailureProbe,
    always_down,
    always_up,
    new_round_robin_balancer,
)
from provider_balancer.demo import UNAVAILABLE_MESSAGE, main, run_demo


def wait_until(predicate, timeout: float = 3.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class TestProbes:
    """프로브 테스트"""

    def test_static_probes(self):
        assert always_up("0") is True
        assert always_down("0") is False

    def test_random_failure_probe_rate(self):
        probe = RandomFailureProbe(0.8, rng=random.Random(5))
        passes = sum(probe("0") for _ in range(2000))
        assert 0.75 < passes / 2000 < 0.85

    def test_random_failure_probe_extremes(self):
        assert all(RandomFailureProbe(1.0)("0") for _ in range(100))
        assert not any(RandomFailureProbe(0.0)("0") for _ in range(100))

    def test_random_failure_probe_invalid_rate(self):
        with pytest.raises(ValueError):
            RandomFailureProbe(1.5)

    @patch('provider_balancer.probes.requests.get')
    def test_http_probe_success(self, mock_get):
        mock_get.return_value = MagicMock(status_code=200)
        probe = HttpProbe("http://backend-{id}:8000/health", timeout=1.0, api_key="key")

        assert probe("3") is True
        mock_get.assert_called_once_with(
            "http://backend-3:8000/health",
            headers={'Authorization': 'Bearer key'},
            timeout=1.0
        )

    @patch('provider_balancer.probes.requests.get')
    def test_http_probe_bad_status(self, mock_get):
        mock_get.return_value = MagicMock(status_code=503)
        assert HttpProbe("http://backend-{id}/health")("0") is False

    @patch('provider_balancer.probes.requests.get')
    def test_http_probe_timeout(self, mock_get):
        mock_get.side_effect = requests.Timeout()
        assert HttpProbe("http://backend-{id}/health")("0") is False

    @patch('provider_balancer.probes.requests.get')
    def test_http_probe_connection_error(self, mock_get):
        mock_get.side_effect = requests.ConnectionError()
        assert HttpProbe(lambda pid: f"http://10.0.0.{pid}/health")("1") is False

    @patch('provider_balancer.probes.requests.get')
    def test_http_probe_drives_heartbeat(self, mock_get):
        """HTTP 프로브 결과가 상태 머신에 반영됨"""
        mock_get.side_effect = lambda url, **kwargs: MagicMock(
            status_code=500 if url.endswith("1/health") else 200
        )
        balancer = new_round_robin_balancer(
            3, probe=HttpProbe("http://backend-{id}/health")
        )
        balancer.heartbeat()

        assert balancer.states()[1] is ProviderState.DISABLED
        assert balancer.enabled_count == 2


class TestBalancerConfig:
    """설정 테스트"""

    def test_defaults(self):
        config = BalancerConfig()
        assert config.pool_size == 7
        assert config.strategy is DispatchStrategy.ROUND_ROBIN
        assert config.capacity_per_provider == 3
        assert config.heartbeat_interval == 2.0
        assert config.probe_success_rate == 0.8

    def test_strategy_name_normalized(self):
        assert BalancerConfig(strategy="RANDOM").strategy is DispatchStrategy.RANDOM

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "balancer.yaml"
        path.write_text(
            "pool_size: 4\n"
            "strategy: random\n"
            "capacity_per_provider: 2\n"
            "heartbeat:\n"
            "  interval: 0.5\n",
            encoding="utf-8"
        )

        config = BalancerConfig.from_file(str(path))

        assert config.pool_size == 4
        assert config.strategy is DispatchStrategy.RANDOM
        assert config.capacity_per_provider == 2
        assert config.heartbeat_interval == 0.5

    def test_from_json(self, tmp_path):
        path = tmp_path / "balancer.json"
        path.write_text(json.dumps({'pool_size': 2, 'heartbeat_interval': 1}), encoding="utf-8")

        config = BalancerConfig.from_file(str(path))

        assert config.pool_size == 2
        assert config.heartbeat_interval == 1.0
        assert config.strategy is DispatchStrategy.ROUND_ROBIN

    def test_empty_yaml_uses_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert BalancerConfig.from_file(str(path)) == BalancerConfig()

    @pytest.mark.parametrize("data", [
        {'pool_size': 11},
        {'pool_size': -1},
        {'pool_size': 'many'},
        {'strategy': 'weighted'},
        {'capacity_per_provider': 0},
        {'heartbeat_interval': 0},
        {'probe_success_rate': 2},
        {'pool_size': 3.9},
        {'pool_size': True},
        {'pool_size': '3.5'},
        {'capacity_per_provider': 2.5},
        {'heartbeat_interval': True},
        {'heartbeat': 5},
        {'heartbeat': [1, 2]},
    ])
    def test_invalid_values(self, data):
        with pytest.raises(ValueError):
            BalancerConfig.from_dict(data)

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("pool_size: [3\n", encoding="utf-8")
        with pytest.raises(ValueError, match="broken.yaml"):
            BalancerConfig.from_file(str(path))

    def test_float_pool_size_not_truncated(self, tmp_path):
        path = tmp_path / "float.yaml"
        path.write_text("pool_size: 3.9\n", encoding="utf-8")
        with pytest.raises(ValueError):
            BalancerConfig.from_file(str(path))

    def test_integer_strings_accepted(self):
        config = BalancerConfig.from_dict({'pool_size': ' 4 ', 'capacity_per_provider': '2'})
        assert config.pool_size == 4
        assert config.capacity_per_provider == 2

    def test_non_mapping_file(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n", encoding="utf-8")
        with pytest.raises(ValueError):
            BalancerConfig.from_file(str(path))

    @patch.dict('os.environ', {
        'BALANCER_POOL_SIZE': '5',
        'BALANCER_STRATEGY': 'random',
        'BALANCER_CAPACITY': '4',
        'BALANCER_HEARTBEAT_INTERVAL': '0.25',
        'BALANCER_PROBE_SUCCESS_RATE': '0.9',
    })
    def test_from_env(self):
        with patch('provider_balancer.config.load_dotenv'):
            config = BalancerConfig.from_env()

        assert config.pool_size == 5
        assert config.strategy is DispatchStrategy.RANDOM
        assert config.capacity_per_provider == 4
        assert config.heartbeat_interval == 0.25
        assert config.probe_success_rate == 0.9

    @patch.dict('os.environ', {
        'BALANCER_POOL_SIZE': '3',
        'BALANCER_STRATEGY': 'round_robin',
        'BALANCER_CAPACITY': '2',
    })
    def test_balancer_from_env(self):
        with patch('provider_balancer.config.load_dotenv'):
            balancer = LoadBalancer.from_env(probe=always_up)

        assert balancer.pool_size == 3
        assert balancer.strategy_type is DispatchStrategy.ROUND_ROBIN
        assert balancer.capacity == 6

    def test_balancer_from_config(self):
        config = BalancerConfig(pool_size=2, strategy=DispatchStrategy.RANDOM,
                                capacity_per_provider=1)
        balancer = LoadBalancer.from_config(config, probe=always_up)

        assert balancer.pool_size == 2
        assert balancer.strategy_type is DispatchStrategy.RANDOM
        assert balancer.capacity == 2

    def test_to_dict(self):
        assert BalancerConfig(strategy="random").to_dict()['strategy'] == 'random'


class TestHeartbeatScheduler:
    """스케줄러 테스트"""

    def test_runs_heartbeat_periodically(self):
        balancer = new_round_robin_balancer(2, probe=always_down)
        scheduler = HeartbeatScheduler(balancer, interval=0.02)

        scheduler.start()
        try:
            assert scheduler.is_running
            assert wait_until(lambda: scheduler.passes >= 3)
            assert balancer.enabled_count == 0
        finally:
            scheduler.stop()

        assert not scheduler.is_running

    def test_stop_is_responsive(self):
        balancer = new_round_robin_balancer(1, probe=always_up)
        scheduler = HeartbeatScheduler(balancer, interval=60)
        scheduler.start()
        assert wait_until(lambda: scheduler.passes >= 1)

        started = time.monotonic()
        scheduler.stop()
        assert time.monotonic() - started < 2.0

    def test_context_manager(self):
        balancer = new_round_robin_balancer(1, probe=always_up)
        with HeartbeatScheduler(balancer, interval=0.05) as scheduler:
            assert scheduler.is_running
        assert not scheduler.is_running

    def test_restart_after_slow_stop_keeps_single_loop(self):
        """stop 타임아웃 후 재시작해도 이전 루프는 다시 돌지 않음"""
        gate = threading.Event()
        callers = []

        def heartbeat():
            callers.append(threading.get_ident())
            if len(callers) == 1:
                gate.wait(5)

        balancer = MagicMock()
        balancer.heartbeat.side_effect = heartbeat
        scheduler = HeartbeatScheduler(balancer, interval=0.01)

        scheduler.start()
        assert wait_until(lambda: len(callers) == 1)
        first_thread = callers[0]

        scheduler.stop(timeout=0.05)
        assert not scheduler.is_running

        scheduler.start()
        try:
            assert scheduler.is_running
            gate.set()
            assert wait_until(lambda: len(callers) >= 5)
        finally:
            scheduler.stop()

        assert callers.count(first_thread) == 1

    def test_invalid_interval(self):
        with pytest.raises(ValueError):
            HeartbeatScheduler(new_round_robin_balancer(1), interval=0)

    def test_heartbeat_error_is_logged_and_loop_continues(self):
        balancer = MagicMock()
        balancer.heartbeat.side_effect = RuntimeError("unexpected")
        with HeartbeatScheduler(balancer, interval=0.01) as scheduler:
            assert wait_until(lambda: scheduler.passes >= 2)


class TestDemo:
    """데모 실행기 테스트"""

    def test_run_demo_assigns_each_round(self):
        lines = []
        balancer = new_round_robin_balancer(3, probe=always_up)

        results = run_demo(balancer, 0.05, rounds=3, batch_size=4, pause=0, out=lines.append)

        assert len(results) == 3
        assert all(len(r) == 4 for r in results)
        assert lines[0] == "Assignments for 4 incoming requests: ['0', '1', '2', '0']"

    def test_run_demo_reports_unavailable(self):
        lines = []
        balancer = new_round_robin_balancer(1, probe=always_down)

        results = run_demo(balancer, 0.01, rounds=3, batch_size=1, pause=0.2, out=lines.append)

        assert results[-1] is None
        assert lines[-1] == UNAVAILABLE_MESSAGE

    def test_main_with_config_file(self, tmp_path, capsys):
        path = tmp_path / "balancer.yaml"
        path.write_text("pool_size: 3\nprobe_success_rate: 1.0\n", encoding="utf-8")

        with patch('provider_balancer.demo.setup_console_logging'):
            code = main([
                '--config', str(path), '--strategy', 'round_robin',
                '--rounds', '1', '--batch', '2', '--pause', '0',
            ])

        out = capsys.readouterr().out
        assert code == 0
        assert "Testing round-robin load balancer. Number of providers: 3." in out
        assert "Assignments for 2 incoming requests:" in out

    @pytest.mark.parametrize("contents", [
        "heartbeat: 5\n",
        "pool_size: [3\n",
        "pool_size: 3.9\n",
    ])
    def test_main_rejects_bad_config_file(self, tmp_path, capsys, contents):
        path = tmp_path / "balancer.yaml"
        path.write_text(contents, encoding="utf-8")

        with patch('provider_balancer.demo.setup_console_logging'):
            code = main(['--config', str(path)])

        assert code == 1
        assert "Error:" in capsys.readouterr().err

    def test_main_rejects_bad_pool_size(self, tmp_path, capsys):
        path = tmp_path / "balancer.yaml"
        path.write_text("pool_size: 3\n", encoding="utf-8")

        with patch('provider_balancer.demo.setup_console_logging'):
            code = main(['--config', str(path), '--pool-size', '11'])

        assert code == 1
        assert "Error:" in capsys.readouterr().err


class TestLogging:
    """로깅 설정 테스트"""

    def test_file_logging(self, tmp_path):
        from provider_balancer.logger import LogStage, logger, setup_file_logging

        log_dir = tmp_path / "logs"
        handler_id = setup_file_logging(str(log_dir), level="info")
        try:
            with LogStage("테스트 단계", pool_size=3):
                pass
        finally:
            logger.remove(handler_id)

        contents = "".join(p.read_text(encoding="utf-8") for p in log_dir.glob("*.log"))
        assert "[시작] 테스트 단계 (pool_size=3)" in contents
        assert "[완료] 테스트 단계" in contents

    def test_get_logger_binds_module(self):
        from provider_balancer.logger import get_logger, logger

        messages = []
        handler_id = logger.add(
            messages.append,
            format="{extra[module]}|{message}",
            filter=lambda record: "module" in record["extra"],
        )
        try:
            get_logger("demo").info("배정 시작")
        finally:
            logger.remove(handler_id)

        assert [m.strip() for m in messages] == ["demo|배정 시작"]

    def test_log_stage_does_not_swallow(self):
        from provider_balancer.logger import LogStage

        with pytest.raises(RuntimeError):
            with LogStage("실패 단계"):
                raise RuntimeError("boom")


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
