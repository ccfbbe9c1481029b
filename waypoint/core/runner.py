"""Process execution capability used by the folder analyzer."""

import asyncio
from typing import List, Optional, Protocol, Sequence, runtime_checkable

from loguru import logger


@runtime_checkable
class CommandRunner(Protocol):
    """Run an executable and capture its stdout.

    Implementations return ``None`` for "no output": launch failure,
    non-zero exit, timeout or blank stdout. They never raise.
    """

    async def run(self, executable: str, args: Sequence[str], cwd: Optional[str] = None) -> Optional[str]:
        ...


class SubprocessRunner:
    """CommandRunner backed by ``asyncio.create_subprocess_exec``."""

    def __init__(self, timeout: float = 5.0, shell: str = "/bin/bash"):
        """
        Initialize the runner.

        Args:
            timeout: Seconds before a command is killed and treated as silent
            shell: Interpreter used by :meth:`run_shell`
        """
        self.timeout = timeout
        self.shell = shell

    async def run(self, executable: str, args: Sequence[str], cwd: Optional[str] = None) -> Optional[str]:
        argv: List[str] = [executable, *args]
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                cwd=cwd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except (OSError, ValueError) as e:
            logger.debug(f"Failed to launch {executable}: {e}")
            return None

        try:
            stdout, _ = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Command timed out after {self.timeout}s: {' '.join(argv)}")
            _kill(process)
            await process.wait()
            return None

        if process.returncode != 0:
            logger.debug(f"Command exited with {process.returncode}: {' '.join(argv)}")
            return None

        output = stdout.decode("utf-8", errors="replace")
        return output if output.strip() else None

    async def run_shell(self, command: str, cwd: Optional[str] = None) -> Optional[str]:
        """Run a shell command line in ``cwd``."""
        return await run_shell(self, command, cwd=cwd, shell=self.shell)


async def run_shell(runner: CommandRunner, command: str, cwd: Optional[str] = None, shell: str = "/bin/bash") -> Optional[str]:
    """Run ``command`` through ``shell -c`` on any CommandRunner."""
    return await runner.run(shell, ["-c", command], cwd=cwd)


def _kill(process: asyncio.subprocess.Process) -> None:
    try:
        process.kill()
    except ProcessLookupError:
        pass
