"""Unit tests for ExecutorConfig validation and environment loading."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from podflow.core.errors import ConfigurationError, ErrorCode, MultipleValidationErrors
from podflow.core.models.config import ExecutorConfig

pytestmark = pytest.mark.unit


class TestDefaults:
    def test_defaults(self) -> None:
        cfg = ExecutorConfig()

        assert cfg.ready_timeout_s is None
        assert cfg.resync_interval_ms == 1000
        assert cfg.shell_command == ['bash', '-s']
        assert cfg.root_label == 'workflow'
        assert cfg.field_manager == 'podflow'
        assert cfg.in_cluster is False
        assert cfg.loglevel == 'INFO'

    def test_shell_command_default_is_not_shared(self) -> None:
        first = ExecutorConfig()
        first.shell_command.append('-x')

        assert ExecutorConfig().shell_command == ['bash', '-s']


class TestFieldBounds:
    @pytest.mark.parametrize('interval', [0, 99, 60_001])
    def test_resync_interval_out_of_range(self, interval: int) -> None:
        with pytest.raises(ValidationError):
            ExecutorConfig(resync_interval_ms=interval)

    @pytest.mark.parametrize('timeout', [0, -1.5])
    def test_ready_timeout_must_be_positive(self, timeout: float) -> None:
        with pytest.raises(ValidationError):
            ExecutorConfig(ready_timeout_s=timeout)

    def test_empty_root_label_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ExecutorConfig(root_label='')


class TestCrossFieldValidation:
    def test_empty_shell_command(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            ExecutorConfig(shell_command=[])

        assert exc_info.value.code == ErrorCode.CONFIG_INVALID_EXECUTOR

    def test_in_cluster_with_kubeconfig(self) -> None:
        with pytest.raises(ConfigurationError, match='in_cluster'):
            ExecutorConfig(in_cluster=True, kubeconfig='/tmp/kubeconfig')

    def test_unknown_loglevel(self) -> None:
        with pytest.raises(ConfigurationError, match='loglevel'):
            ExecutorConfig(loglevel='chatty')

    def test_errors_are_collected(self) -> None:
        with pytest.raises(MultipleValidationErrors) as exc_info:
            ExecutorConfig(shell_command=[''], loglevel='chatty')

        assert len(exc_info.value.report.errors) == 2


class TestFromEnv:
    def test_empty_environment_gives_defaults(self) -> None:
        assert ExecutorConfig.from_env({}) == ExecutorConfig()

    def test_reads_prefixed_variables(self) -> None:
        cfg = ExecutorConfig.from_env({
            'PODFLOW_READY_TIMEOUT_S': '30',
            'PODFLOW_RESYNC_INTERVAL_MS': '250',
            'PODFLOW_SHELL': 'sh -s',
            'PODFLOW_ROOT_LABEL': 'pipeline',
            'PODFLOW_FIELD_MANAGER': 'ci',
            'PODFLOW_CONTEXT': 'staging',
            'PODFLOW_LOGLEVEL': 'DEBUG',
        })

        assert cfg.ready_timeout_s == 30.0
        assert cfg.resync_interval_ms == 250
        assert cfg.shell_command == ['sh', '-s']
        assert cfg.root_label == 'pipeline'
        assert cfg.field_manager == 'ci'
        assert cfg.context == 'staging'
        assert cfg.loglevel == 'DEBUG'

    @pytest.mark.parametrize('raw,expected', [('1', True), ('true', True), ('no', False)])
    def test_in_cluster_flag(self, raw: str, expected: bool) -> None:
        assert ExecutorConfig.from_env({'PODFLOW_IN_CLUSTER': raw}).in_cluster is expected

    def test_empty_values_are_ignored(self) -> None:
        cfg = ExecutorConfig.from_env({'PODFLOW_ROOT_LABEL': ''})
        assert cfg.root_label == 'workflow'

    def test_overrides_win_over_environment(self) -> None:
        cfg = ExecutorConfig.from_env(
            {'PODFLOW_ROOT_LABEL': 'pipeline'}, root_label='flow', context=None
        )

        assert cfg.root_label == 'flow'
        assert cfg.context is None

    def test_invalid_value_becomes_configuration_error(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            ExecutorConfig.from_env({'PODFLOW_RESYNC_INTERVAL_MS': 'soon'})

        err = exc_info.value
        assert err.code == ErrorCode.CONFIG_INVALID_ENV
        assert any(note.startswith('resync_interval_ms:') for note in err.notes)
        assert isinstance(err.__cause__, ValidationError)

    def test_reads_process_environment_by_default(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv('PODFLOW_ROOT_LABEL', 'from-env')

        assert ExecutorConfig.from_env().root_label == 'from-env'
