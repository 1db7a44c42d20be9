# podflow/core/execution/script_runner.py
from __future__ import annotations

import subprocess
from typing import Sequence

from podflow.core.defaults import DEFAULT_SHELL_COMMAND
from podflow.core.errors import ErrorCode, ProcessError
from podflow.core.logging import get_logger
from podflow.core.types.result import Err, Ok, Result

logger = get_logger('script')

type ScriptResult = Result[None, ProcessError]


class ScriptRunner:
    """Run a shell script synchronously with live output passthrough.

    The script is written to the interpreter's stdin. stdout and stderr
    are inherited from the calling process and never captured.
    """

    def __init__(self, command: Sequence[str] = DEFAULT_SHELL_COMMAND) -> None:
        self.command: list[str] = list(command)

    def run(self, script: str) -> ScriptResult:
        try:
            proc = subprocess.Popen(
                self.command,
                stdin=subprocess.PIPE,
                text=True,
            )
        except OSError as exc:
            logger.error(f'Failed to start {self.command[0]}: {exc}')
            return Err(
                ProcessError(
                    message=f'failed to start {" ".join(self.command)}: {exc}',
                    code=ErrorCode.PROCESS_START_FAILED,
                    help_text=f"ensure '{self.command[0]}' is installed and on PATH",
                )
            )

        try:
            proc.communicate(input=script)
        except BaseException:
            # Interrupted while waiting: do not leave the child behind
            proc.kill()
            proc.wait()
            raise

        if proc.returncode != 0:
            detail = (
                f'was killed by signal {-proc.returncode}'
                if proc.returncode < 0
                else f'exited with status {proc.returncode}'
            )
            logger.error(f'Script {detail}')
            return Err(
                ProcessError(
                    message=f'script {detail}',
                    code=ErrorCode.PROCESS_EXIT_NONZERO,
                    returncode=proc.returncode,
                )
            )

        return Ok(None)
