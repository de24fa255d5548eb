"""Tests for the command line entry point and exit status."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from ingest import __main__ as entry


@pytest.fixture
def quiet_main():
    """Neutralise side effects of main() that tests do not exercise."""
    with patch.object(entry, "load_dotenv"), patch.object(entry, "setup_logging"), patch.object(
        entry, "start_metrics_server", return_value=8000
    ) as metrics:
        yield metrics


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "hub:\n"
        "  api_key: ${NEYNAR_API_KEY:-}\n"
        "sink:\n"
        "  base_url: https://worker.example.dev\n"
        "observability:\n"
        "  health_port: 0\n"
    )
    return path


class TestParseArgs:
    def test_defaults(self):
        args = entry.parse_args([])
        assert args.config is None
        assert args.metrics_port is None
        assert args.health_port is None
        assert args.log_level == "INFO"
        assert args.log_to_stdout is False

    def test_port_flags_become_overrides(self):
        args = entry.parse_args(["--metrics-port", "0", "--health-port", "9000"])
        assert entry._build_overrides(args) == {
            "observability": {"metrics_port": 0, "health_port": 9000}
        }


class TestExitStatus:
    def test_missing_api_key_exits_1_before_connecting(self, quiet_main, config_file, clean_env):
        with patch.object(entry, "StreamService") as service_cls:
            code = entry.main(["--config", str(config_file)])

        assert code == 1
        service_cls.assert_not_called()
        quiet_main.assert_not_called()

    def test_missing_config_file_exits_1(self, quiet_main, tmp_path, clean_env):
        clean_env.setenv("NEYNAR_API_KEY", "k")
        code = entry.main(["--config", str(tmp_path / "absent.yaml")])
        assert code == 1

    def test_clean_shutdown_exits_0(self, quiet_main, config_file, clean_env):
        clean_env.setenv("NEYNAR_API_KEY", "k")
        service = MagicMock()
        service.run = AsyncMock()

        with patch.object(entry, "StreamService", return_value=service) as service_cls:
            code = entry.main(["--config", str(config_file)])

        assert code == 0
        config = service_cls.call_args[0][0]
        assert config.hub_api_key == "k"
        service.run.assert_awaited_once()
        quiet_main.assert_called_once_with(8000)

    def test_metrics_port_zero_skips_metrics_server(self, quiet_main, config_file, clean_env):
        clean_env.setenv("NEYNAR_API_KEY", "k")
        service = MagicMock()
        service.run = AsyncMock()

        with patch.object(entry, "StreamService", return_value=service):
            code = entry.main(["--config", str(config_file), "--metrics-port", "0"])

        assert code == 0
        quiet_main.assert_not_called()

    def test_fatal_error_exits_1(self, quiet_main, config_file, clean_env):
        clean_env.setenv("NEYNAR_API_KEY", "k")
        service = MagicMock()
        service.run = AsyncMock(side_effect=RuntimeError("boom"))

        with patch.object(entry, "StreamService", return_value=service):
            code = entry.main(["--config", str(config_file)])

        assert code == 1

    def test_startup_banner_masks_api_key(self, quiet_main, config_file, clean_env):
        clean_env.setenv("NEYNAR_API_KEY", "super-secret")
        service = MagicMock()
        service.run = AsyncMock()

        with patch.object(entry, "StreamService", return_value=service), patch.object(
            entry, "log_worker_startup"
        ) as banner:
            entry.main(["--config", str(config_file)])

        shown = banner.call_args.kwargs["extra_config"]
        assert shown["hub_api_key"] == "***"
        assert "super-secret" not in str(banner.call_args)
