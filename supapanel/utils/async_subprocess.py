"""
Async subprocess helper for the container tooling (docker compose).

Output is always captured and decoded; a command that outlives its timeout is
killed before asyncio.TimeoutError reaches the caller.
"""
import asyncio
from dataclasses import dataclass
from typing import Dict, List, Optional


@dataclass
class SubprocessResult:
    """Finished command: exit code plus decoded output."""
    returncode: int
    stdout: str
    stderr: str
    args: List[str]

    @property
    def success(self) -> bool:
        return self.returncode == 0


def _decode(data: Optional[bytes]) -> str:
    return data.decode('utf-8', errors='replace') if data else ""


async def run_async(
    cmd: List[str],
    timeout: Optional[float] = None,
    cwd: Optional[str] = None,
    env: Optional[Dict[str, str]] = None
) -> SubprocessResult:
    """
    Run a command to completion without blocking the event loop.

    A non-zero exit code is not an error here; check result.success.

    Raises:
        asyncio.TimeoutError: The command ran longer than timeout (it is killed)
        RuntimeError: The command could not be started (binary missing, bad cwd)
    """
    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
            env=env
        )
    except OSError as e:
        raise RuntimeError(f"Could not start {cmd[0]}: {e}") from e

    try:
        stdout_bytes, stderr_bytes = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        raise

    return SubprocessResult(
        returncode=process.returncode,
        stdout=_decode(stdout_bytes),
        stderr=_decode(stderr_bytes),
        args=cmd,
    )
