import subprocess
import threading
import time
import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

COMPLETED = 'COMPLETED'
FAILED = 'FAILED'
TIMEOUT = 'TIMEOUT'
PROCESS_ERROR = 'PROCESS_ERROR'
REJECTED = 'REJECTED'


@dataclass
class ExecutionResult:
    status: str
    stdout: str = ''
    stderr: str = ''
    exit_code: Optional[int] = None
    execution_time_ms: int = 0

    @property
    def succeeded(self) -> bool:
        return self.status == COMPLETED

    @property
    def is_program_error(self) -> bool:
        """The code ran and reported an error (or ran out of time)."""
        return self.status in (FAILED, TIMEOUT)

    @property
    def error_line(self) -> str:
        return self.stderr.split('\n')[0] if self.stderr else ''


def _truncate(text, limit, label):
    if len(text) > limit:
        logger.warning(f"{label} truncated from {len(text)} to {limit} characters")
        return text[:limit] + f"\n... [{label} truncated - exceeded {limit // 1024}KB limit]"
    return text


class CodeExecutionService:
    """Run Python snippets in a separate interpreter process.

    Each call spawns a fresh ``python -c <code>`` process. A run that writes
    anything to stderr counts as failed, whatever its exit code. Failing to
    start the process at all is reported as ``PROCESS_ERROR`` so it is never
    confused with an error raised by the submitted code.
    """

    def __init__(self, python_binary='python3', timeout=30, max_output_size=1024 * 100,
                 max_concurrent=8):
        self.python_binary = python_binary
        self.timeout = timeout
        self.max_output_size = max_output_size
        self.max_concurrent = max_concurrent
        self._slots = threading.BoundedSemaphore(max_concurrent)

    @classmethod
    def from_config(cls, config):
        return cls(
            python_binary=config['PYTHON_BINARY'],
            timeout=config['EXECUTION_TIMEOUT'],
            max_output_size=config['MAX_OUTPUT_SIZE'],
            max_concurrent=config['MAX_CONCURRENT_EXECUTIONS'],
        )

    def execute(self, code) -> ExecutionResult:
        if not self._slots.acquire(blocking=False):
            logger.warning(f"Execution rejected: {self.max_concurrent} executions already running")
            return ExecutionResult(
                status=REJECTED,
                stderr=f'Too many concurrent executions (limit {self.max_concurrent})'
            )
        try:
            return self._execute_python(code)
        finally:
            self._slots.release()

    def _execute_python(self, code):
        logger.info(f"Executing Python code (timeout: {self.timeout}s)")
        start_time = time.time()

        try:
            process = subprocess.Popen(
                [self.python_binary, '-c', code],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                encoding='utf-8',
                errors='replace',
            )
        except (OSError, ValueError, TypeError) as e:
            logger.error(f"Could not start {self.python_binary}: {e}")
            return ExecutionResult(status=PROCESS_ERROR, stderr=str(e))

        try:
            stdout, stderr = process.communicate(timeout=self.timeout)
        except subprocess.TimeoutExpired:
            process.kill()
            process.communicate()
            logger.warning(f"Python execution timed out after {self.timeout}s")
            return ExecutionResult(
                status=TIMEOUT,
                stderr=f'Execution timeout exceeded ({self.timeout} seconds)',
                exit_code=process.returncode,
                execution_time_ms=int((time.time() - start_time) * 1000)
            )
        except OSError as e:
            process.kill()
            logger.error(f"Python process failed: {e}")
            return ExecutionResult(status=PROCESS_ERROR, stderr=str(e))

        execution_time = int((time.time() - start_time) * 1000)
        stdout = _truncate(stdout or '', self.max_output_size, 'Output')
        stderr = _truncate(stderr or '', self.max_output_size, 'Error output')

        if stderr:
            logger.warning(f"Python execution wrote to stderr (exit code {process.returncode})")
            status = FAILED
        else:
            logger.info(f"Python execution completed successfully ({execution_time}ms)")
            status = COMPLETED

        return ExecutionResult(
            status=status,
            stdout=stdout,
            stderr=stderr,
            exit_code=process.returncode,
            execution_time_ms=execution_time
        )
