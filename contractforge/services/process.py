"""
Subprocess execution for external collaborators (git, generator, compiler).
"""

from __future__ import annotations

import asyncio
import shutil
from dataclasses import dataclass
from pathlib import Path

from ..core.exceptions import ToolNotFoundError
from ..core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class CommandResult:
    """Outcome of one external command."""

    returncode: int
    stdout: str
    stderr: str
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out

    def tail(self, lines: int = 20) -> str:
        """Last lines of stderr (or stdout if stderr is empty) for error messages."""
        text = self.stderr.strip() or self.stdout.strip()
        return "\n".join(text.splitlines()[-lines:])


def find_tool(name: str) -> str:
    """Locate an executable on PATH.

    Raises:
        ToolNotFoundError: If the tool cannot be found.
    """
    candidate = Path(name)
    if candidate.is_absolute() or candidate.parent != Path("."):
        if candidate.exists():
            return str(candidate)
    elif found := shutil.which(name):
        return found

    raise ToolNotFoundError(
        message=f"Tool not found: {name}",
        tool_name=name,
        expected_path="PATH or configured location",
        install_hint=f"Install {name} and add to PATH, or configure its path",
    )


async def run_command(
    cmd: list[str],
    cwd: Path | None = None,
    timeout: float | None = None,
    echo: bool = False,
) -> CommandResult:
    """Run a command asynchronously, collecting its output.

    The process is killed when the timeout expires; the result then has
    timed_out set and a non-zero return code.
    """
    executable = find_tool(cmd[0])
    logger.debug("Running command", command=" ".join(cmd), cwd=str(cwd) if cwd else None)

    process = await asyncio.create_subprocess_exec(
        executable,
        *cmd[1:],
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        cwd=cwd,
    )

    stdout_lines: list[str] = []
    stderr_lines: list[str] = []

    async def read_stream(stream: asyncio.StreamReader, lines: list[str], stream_name: str) -> None:
        while True:
            line = await stream.readline()
            if not line:
                break
            decoded = line.decode("utf-8", errors="replace").rstrip()
            lines.append(decoded)
            if echo:
                logger.info(f"[{stream_name}] {decoded}")

    async def communicate() -> None:
        await asyncio.gather(
            read_stream(process.stdout, stdout_lines, "stdout"),  # type: ignore[arg-type]
            read_stream(process.stderr, stderr_lines, "stderr"),  # type: ignore[arg-type]
        )
        await process.wait()

    timed_out = False
    try:
        await asyncio.wait_for(communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        timed_out = True
        logger.warning("Command timed out", command=cmd[0], timeout_seconds=timeout)
        process.kill()
        await process.wait()
    except asyncio.CancelledError:
        process.kill()
        await process.wait()
        raise

    returncode = process.returncode if process.returncode is not None else -1
    if timed_out and returncode == 0:
        returncode = -1

    return CommandResult(
        returncode=returncode,
        stdout="\n".join(stdout_lines),
        stderr="\n".join(stderr_lines),
        timed_out=timed_out,
    )
