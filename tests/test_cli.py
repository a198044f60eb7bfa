"""
Tests for fleet_datafeed.cli module.

Tests argument parsing, override mapping and exit codes.
"""

from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import Mock

import pytest

from fleet_datafeed import cli
from fleet_datafeed.config import DataFeedConfig
from fleet_datafeed.exporter import CsvExporter
from fleet_datafeed.lifecycle import LifecycleCoordinator
from fleet_datafeed.models import ResultBundle
from fleet_datafeed.worker import DataFeedWorker

CREDENTIAL_ARGS: list[str] = [
    '--database',
    'fleet_db',
    '--user',
    'feed@example.com',
    '--password',
    'secret',
]


class StubLoader:
    """Loader returning empty bundles, or raising if configured to."""

    def __init__(self, error: Exception | None = None) -> None:
        self.error: Exception | None = error

    def load(self) -> ResultBundle:
        if self.error is not None:
            raise self.error
        return ResultBundle()

    def close(self) -> None:
        pass


def _stub_factory(
    error: Exception | None = None,
) -> Callable[[DataFeedConfig], Callable[[], DataFeedWorker]]:
    def build_worker_factory(config: DataFeedConfig) -> Callable[[], DataFeedWorker]:
        return lambda: DataFeedWorker(StubLoader(error), Mock(spec=CsvExporter), 0.0)

    return build_worker_factory


class TestParseArgs:
    """Test argument parsing and override mapping."""

    def test_unset_flags_are_none(self) -> None:
        """Should leave unset flags as None so file values win."""
        overrides: dict[str, dict[str, Any]] = cli.overrides_from_args(cli.parse_args([]))

        assert all(
            value is None for section in overrides.values() for value in section.values()
        )

    def test_flags_map_to_sections(self) -> None:
        """Should map every flag onto its configuration field."""
        args = cli.parse_args(
            [
                *CREDENTIAL_ARGS,
                '--server',
                'my3.geotab.com',
                '--gps-token',
                '0a',
                '--continuous',
                '--interval',
                '15',
                '--output-path',
                'out',
                '--log-level',
                'DEBUG',
            ]
        )

        overrides: dict[str, dict[str, Any]] = cli.overrides_from_args(args)

        assert overrides['server']['server'] == 'my3.geotab.com'
        assert overrides['server']['database'] == 'fleet_db'
        assert overrides['feed']['gps_token'] == '0a'
        assert overrides['feed']['continuous'] is True
        assert overrides['feed']['feed_interval_seconds'] == 15.0  # noqa: PLR2004
        assert overrides['export']['output_path'] == 'out'
        assert overrides['logging']['console_level'] == 'DEBUG'


class TestRun:
    """Test exit codes of run()."""

    def test_missing_credentials_is_config_error(self) -> None:
        """Should return 2 without starting anything."""
        assert cli.run([]) == cli.EXIT_CONFIG_ERROR

    def test_missing_config_file_is_config_error(self, tmp_path: Path) -> None:
        """Should return 2 when the config file does not exist."""
        assert cli.run(['--config', str(tmp_path / 'nope.yaml')]) == cli.EXIT_CONFIG_ERROR

    def test_one_shot_success(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Should return 0 after a one-shot run."""
        monkeypatch.setattr(cli, 'build_worker_factory', _stub_factory())

        exit_code: int = cli.run([*CREDENTIAL_ARGS, '--output-path', str(tmp_path)])

        assert exit_code == cli.EXIT_SUCCESS

    def test_worker_failure_is_abnormal_exit(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Should return 1 when the worker ends abnormally."""
        monkeypatch.setattr(
            cli, 'build_worker_factory', _stub_factory(RuntimeError('feed unavailable'))
        )

        exit_code: int = cli.run(
            [*CREDENTIAL_ARGS, '--output-path', str(tmp_path), '--continuous']
        )

        assert exit_code == cli.EXIT_FAILURE

    def test_build_worker_factory_wires_components(
        self, data_feed_config: DataFeedConfig
    ) -> None:
        """Should build a worker without contacting the server."""
        worker: DataFeedWorker = cli.build_worker_factory(data_feed_config)()

        assert isinstance(worker, DataFeedWorker)
        assert not worker.is_alive()
        assert data_feed_config.export.output_path.is_dir()

    def test_cancel_before_start_exits_cleanly(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Should return 0 when shutdown was requested before the worker started."""
        monkeypatch.setattr(cli, 'build_worker_factory', _stub_factory())
        install_handlers = LifecycleCoordinator.install_signal_handlers

        def install_then_cancel(coordinator: LifecycleCoordinator) -> None:
            install_handlers(coordinator)
            coordinator.shutdown()

        monkeypatch.setattr(
            LifecycleCoordinator, 'install_signal_handlers', install_then_cancel
        )

        exit_code: int = cli.run(
            [*CREDENTIAL_ARGS, '--output-path', str(tmp_path), '--continuous']
        )

        assert exit_code == cli.EXIT_SUCCESS
