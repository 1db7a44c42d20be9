"""Rust-style error display for podflow validation and execution errors."""

from __future__ import annotations

import os
import sys
import traceback
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Error codes for podflow errors.

    Organized by category:
    - E001-E099: Workflow file validation errors
    - E100-E199: Task configuration errors
    - E200-E299: Executor config/CLI errors
    - E400-E499: Runtime execution errors
    """

    # Workflow validation (E001-E099)
    WORKFLOW_FILE_UNREADABLE = 'E001'
    WORKFLOW_INVALID_ROOT = 'E002'
    WORKFLOW_NO_NODES = 'E003'
    WORKFLOW_INVALID_NODE = 'E004'
    WORKFLOW_INVALID_DEPENDENCY = 'E005'
    WORKFLOW_SELF_DEPENDENCY = 'E006'
    WORKFLOW_CYCLE_DETECTED = 'E007'

    # Task configuration (E100-E199)
    TASK_MISSING_FIELD = 'E100'
    TASK_INVALID_TEMPLATE = 'E101'

    # Config/CLI (E200-E299)
    CONFIG_INVALID_EXECUTOR = 'E200'
    CONFIG_INVALID_ENV = 'E201'
    CLI_INVALID_ARGS = 'E202'

    # Runtime execution (E400-E499)
    RESOURCE_APPLY_FAILED = 'E400'
    RESOURCE_DELETE_FAILED = 'E401'
    READINESS_DECODE_FAILED = 'E410'
    READINESS_FAULT = 'E411'
    READINESS_TIMEOUT = 'E412'
    READINESS_CANCELLED = 'E413'
    PROCESS_START_FAILED = 'E420'
    PROCESS_EXIT_NONZERO = 'E421'


class _Colors:
    """ANSI escape codes for terminal colors."""

    RESET = '\033[0m'
    BOLD = '\033[1m'
    RED = '\033[91m'
    BLUE = '\033[94m'
    CYAN = '\033[96m'
    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    DIM = '\033[2m'


class _NoColors:
    """No-op color codes for non-TTY output."""

    RESET = ''
    BOLD = ''
    RED = ''
    BLUE = ''
    CYAN = ''
    GREEN = ''
    YELLOW = ''
    DIM = ''


def _env_flag(name: str) -> bool:
    return os.environ.get(name, '').lower() in ('1', 'true', 'yes')


def _should_use_colors() -> bool:
    """Determine if colors should be used in output."""
    if _env_flag('PODFLOW_FORCE_COLOR'):
        return True

    # NO_COLOR standard (https://no-color.org/)
    if os.environ.get('NO_COLOR') is not None:
        return False

    return hasattr(sys.stderr, 'isatty') and sys.stderr.isatty()


def _should_show_verbose() -> bool:
    """Determine if verbose output (full traceback) should be shown."""
    return _env_flag('PODFLOW_VERBOSE')


def _should_use_plain_errors() -> bool:
    """Determine if plain Python errors should be used instead of Rust-style."""
    return _env_flag('PODFLOW_PLAIN_ERRORS')


@dataclass
class PodflowError(Exception):
    """Base exception for podflow errors.

    Provides Rust-style formatting with:
    - Error code and category
    - Notes and help text
    """

    message: str
    code: ErrorCode | None = None
    notes: list[str] = field(default_factory=lambda: [])
    help_text: str | None = None

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def with_note(self, note: str) -> PodflowError:
        """Add a note to the error (fluent API)."""
        self.notes.append(note)
        return self

    def with_help(self, help_text: str) -> PodflowError:
        """Set help text (fluent API)."""
        self.help_text = help_text
        return self

    def format_rust_style(self, use_colors: bool | None = None) -> str:
        """Format the error in Rust style."""
        if use_colors is None:
            use_colors = _should_use_colors()

        c = _Colors if use_colors else _NoColors
        lines: list[str] = ['']

        code_part = f'[{self.code.value}]' if self.code else ''
        lines.append(f'{c.BOLD}{c.RED}error{code_part}:{c.RESET} {self.message}')

        for note in self.notes:
            note_lines = note.split('\n')
            lines.append(
                f'   {c.BLUE}={c.RESET} {c.BOLD}{c.BLUE}note{c.RESET}: {note_lines[0]}'
            )
            for note_line in note_lines[1:]:
                lines.append(f'          {note_line}')

        if self.help_text:
            lines.append('')
            lines.append(f'   {c.BLUE}={c.RESET} {c.BOLD}{c.GREEN}help{c.RESET}:')
            for help_line in self.help_text.split('\n'):
                lines.append(f'        {help_line}')

        return '\n'.join(lines)

    def __str__(self) -> str:
        """Plain text rendering, safe for logs and non-terminal contexts."""
        return self.format_rust_style(use_colors=False)


_original_excepthook = sys.excepthook


def _podflow_excepthook(
    exc_type: type[BaseException],
    exc_value: BaseException,
    exc_tb: Any,
) -> None:
    """Custom exception hook for PodflowError exceptions."""
    if _should_use_plain_errors():
        _original_excepthook(exc_type, exc_value, exc_tb)
        return

    if isinstance(exc_value, PodflowError):
        print(exc_value.format_rust_style(), file=sys.stderr)

        if _should_show_verbose():
            print(file=sys.stderr)
            c = _Colors if _should_use_colors() else _NoColors
            print(
                f'{c.DIM}Full traceback (PODFLOW_VERBOSE=1):{c.RESET}',
                file=sys.stderr,
            )
            traceback.print_exception(exc_type, exc_value, exc_tb, file=sys.stderr)
    else:
        _original_excepthook(exc_type, exc_value, exc_tb)


def install_error_handler() -> None:
    """Install the custom exception hook for Rust-style error display."""
    sys.excepthook = _podflow_excepthook


def uninstall_error_handler() -> None:
    """Restore the original exception hook."""
    sys.excepthook = _original_excepthook


# =============================================================================
# Validation errors
# =============================================================================


@dataclass
class WorkflowValidationError(PodflowError):
    """Raised when a workflow file is invalid."""

    pass


@dataclass
class ConfigurationError(PodflowError):
    """Raised when executor configuration or CLI input is invalid."""

    pass


# =============================================================================
# Execution errors
# =============================================================================


@dataclass
class TaskExecutionError(PodflowError):
    """Base for failures returned by the task dispatcher to the scheduler."""

    task_name: str | None = None


@dataclass
class ConfigExtractionError(TaskExecutionError):
    """A required field is missing or malformed in a task's configuration."""

    field_name: str = ''


@dataclass
class ResourceOperationError(TaskExecutionError):
    """The apply or delete collaborator failed."""

    operation: str = ''


@dataclass
class ReadinessError(TaskExecutionError):
    """Terminal failure of a readiness wait."""

    resource: str = ''


@dataclass
class ReadinessDecodeError(ReadinessError):
    """A watch event could not be decoded into the expected resource shape."""

    pass


@dataclass
class ReadinessFault(ReadinessError):
    """Unexpected exception raised while processing watch events."""

    pass


@dataclass
class WatchTimeoutError(ReadinessError):
    """The readiness wait exceeded its configured timeout."""

    timeout_s: float | None = None


@dataclass
class WatchCancelledError(ReadinessError):
    """The readiness wait was cancelled by the caller."""

    pass


@dataclass
class ProcessError(TaskExecutionError):
    """A script failed to start or exited abnormally."""

    returncode: int | None = None


# =============================================================================
# Phase-Gated Error Collection
# =============================================================================


class ValidationReport:
    """Collects multiple PodflowError instances within a validation phase."""

    def __init__(self, phase_name: str) -> None:
        self.phase_name: str = phase_name
        self.errors: list[PodflowError] = []

    def add(self, error: PodflowError) -> None:
        self.errors.append(error)

    def has_errors(self) -> bool:
        return len(self.errors) > 0

    def format_rust_style(self, use_colors: bool | None = None) -> str:
        """Format all collected errors, then append an aborting summary."""
        if use_colors is None:
            use_colors = _should_use_colors()

        c = _Colors if use_colors else _NoColors
        parts = [error.format_rust_style(use_colors=use_colors) for error in self.errors]

        count = len(self.errors)
        parts.append(
            f'\n{c.BOLD}{c.RED}error{c.RESET}: aborting due to {count} previous errors'
        )

        return '\n'.join(parts)

    def __str__(self) -> str:
        return self.format_rust_style(use_colors=False)


@dataclass
class MultipleValidationErrors(PodflowError):
    """Wraps a ValidationReport containing 2+ errors."""

    report: ValidationReport = field(default_factory=lambda: ValidationReport(''))

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f'aborting due to {len(self.report.errors)} previous errors'
        super().__post_init__()

    def format_rust_style(self, use_colors: bool | None = None) -> str:
        return self.report.format_rust_style(use_colors=use_colors)

    def __str__(self) -> str:
        return self.format_rust_style(use_colors=False)


def raise_collected(report: ValidationReport) -> None:
    """Raise collected errors.

    - 0 errors: no-op (returns normally)
    - 1 error: raises the original error (preserves except clauses)
    - 2+ errors: raises MultipleValidationErrors wrapping the report
    """
    count = len(report.errors)
    if count == 0:
        return
    if count == 1:
        raise report.errors[0]
    raise MultipleValidationErrors(
        message=f'aborting due to {count} previous errors',
        report=report,
    )
