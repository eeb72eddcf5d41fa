"""
Git command runner with dubious ownership handling.

Every git invocation in Repo Indexer goes through run_git_command (or
run_git_command_bounded for commands with unbounded output) so the
repository is always marked as a safe.directory, which keeps git working
when the working copy is owned by a different user.
"""

import os
import subprocess
import tempfile
import threading
from pathlib import Path
from typing import List, Dict, Optional


def get_git_environment(repo_dir: Path) -> Dict[str, str]:
    """Build the environment for a git command run against repo_dir.

    Adds a safe.directory entry at index 0 of the GIT_CONFIG_* variables and
    shifts any entries already present in the calling environment after it.
    """
    env = os.environ.copy()

    existing_count = 0
    try:
        existing_count = int(os.environ.get("GIT_CONFIG_COUNT", "0"))
    except ValueError:
        existing_count = 0

    for idx in range(existing_count - 1, -1, -1):
        key = os.environ.get(f"GIT_CONFIG_KEY_{idx}")
        value = os.environ.get(f"GIT_CONFIG_VALUE_{idx}")
        if key is None:
            continue
        env[f"GIT_CONFIG_KEY_{idx + 1}"] = key
        env[f"GIT_CONFIG_VALUE_{idx + 1}"] = value or ""

    env["GIT_CONFIG_KEY_0"] = "safe.directory"
    env["GIT_CONFIG_VALUE_0"] = str(Path(repo_dir).resolve())
    env["GIT_CONFIG_COUNT"] = str(existing_count + 1)

    # Never block on a credential or editor prompt
    env["GIT_TERMINAL_PROMPT"] = "0"

    return env


def run_git_command(
    cmd: List[str],
    cwd: Path,
    check: bool = True,
    text: bool = True,
    timeout: Optional[float] = None,
) -> subprocess.CompletedProcess:
    """
    Run a git command in cwd and capture its output.

    Args:
        cmd: Git command as a list (e.g., ["git", "log", "-n", "2"])
        cwd: Working directory for the command
        check: Whether to raise CalledProcessError on non-zero exit
        text: Whether to decode output as text (utf-8, undecodable bytes replaced)
        timeout: Optional timeout in seconds

    Returns:
        CompletedProcess instance with the command result

    Raises:
        ValueError: If cmd does not start with "git"
        subprocess.CalledProcessError: If check=True and command fails
        subprocess.TimeoutExpired: If timeout is exceeded
    """
    if not cmd or cmd[0] != "git":
        raise ValueError("Command must start with 'git'")

    extra = {"encoding": "utf-8", "errors": "replace"} if text else {}

    return subprocess.run(
        cmd,
        cwd=cwd,
        check=check,
        capture_output=True,
        timeout=timeout,
        env=get_git_environment(Path(cwd)),
        **extra,
    )


class GitOutputLimitExceeded(RuntimeError):
    """Raised when a git command writes more than the allowed stdout bytes."""

    def __init__(self, cmd: List[str], max_output: int):
        super().__init__(
            f"{' '.join(cmd[:2])} output exceeds maximum buffer "
            f"of {max_output} bytes"
        )
        self.cmd = cmd
        self.max_output = max_output


def run_git_command_bounded(
    cmd: List[str],
    cwd: Path,
    max_output: int,
    timeout: Optional[float] = None,
    read_size: int = 64 * 1024,
) -> subprocess.CompletedProcess:
    """
    Run a git command, reading at most max_output + 1 bytes of stdout.

    The process is killed as soon as its output goes over the limit, so the
    full output of a huge command is never held in memory. Stdout is
    decoded as utf-8 (undecodable bytes replaced) only after the byte count
    is checked.

    Raises:
        ValueError: If cmd does not start with "git"
        GitOutputLimitExceeded: If stdout is longer than max_output bytes
        subprocess.CalledProcessError: If the command exits non-zero
        subprocess.TimeoutExpired: If timeout is exceeded
    """
    if not cmd or cmd[0] != "git":
        raise ValueError("Command must start with 'git'")

    timed_out = threading.Event()
    output = bytearray()
    exceeded = False

    # stderr goes to a file so a chatty command cannot block on a full pipe
    with tempfile.TemporaryFile() as stderr_file:
        process = subprocess.Popen(
            cmd,
            cwd=cwd,
            stdout=subprocess.PIPE,
            stderr=stderr_file,
            env=get_git_environment(Path(cwd)),
        )

        def kill_on_timeout() -> None:
            timed_out.set()
            process.kill()

        timer = threading.Timer(timeout, kill_on_timeout) if timeout else None
        if timer:
            timer.start()
        try:
            while True:
                remaining = max_output + 1 - len(output)
                block = process.stdout.read(min(read_size, remaining))
                if not block:
                    break
                output.extend(block)
                if len(output) > max_output:
                    exceeded = True
                    process.kill()
                    break
            process.stdout.close()
            returncode = process.wait()
        except BaseException:
            process.kill()
            process.wait()
            raise
        finally:
            if timer:
                timer.cancel()

        stderr_file.seek(0)
        stderr = stderr_file.read().decode("utf-8", errors="replace")

    if exceeded:
        raise GitOutputLimitExceeded(cmd, max_output)
    if timed_out.is_set():
        raise subprocess.TimeoutExpired(
            cmd, timeout, output=bytes(output), stderr=stderr
        )

    stdout = output.decode("utf-8", errors="replace")
    if returncode != 0:
        raise subprocess.CalledProcessError(
            returncode, cmd, output=stdout, stderr=stderr
        )
    return subprocess.CompletedProcess(cmd, returncode, stdout, stderr)
