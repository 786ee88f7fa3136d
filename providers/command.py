"""External executable backend - a workflow CLI printing feedback JSON."""

import json
import os
import shutil
import subprocess
from pathlib import Path
from typing import Any

from loguru import logger

from providers.errors import BackendMissing, BackendTimeout, MalformedPayload, classify_message

QUERY_PLACEHOLDER = "{query}"


def resolve_binary(name: str, bin_env: str | None = None, candidates: list[str] | None = None) -> str:
    """Find the executable: env override, explicit candidates, then PATH."""
    ordered: list[str] = []
    if bin_env and os.environ.get(bin_env):
        ordered.append(os.environ[bin_env])
    ordered.extend(candidates or [])
    ordered.append(name)

    for candidate in ordered:
        path = Path(candidate).expanduser()
        if path.is_file() and os.access(path, os.X_OK):
            return str(path)
        found = shutil.which(candidate)
        if found:
            return found

    raise BackendMissing(f"{name} binary not found (checked {len(ordered)} locations)")


class CommandBackend:
    """Run `<exe> <args...>` with `{query}` substituted; stdout must be JSON."""

    def __init__(
        self,
        executable: str,
        args: list[str] | None = None,
        bin_env: str | None = None,
        candidates: list[str] | None = None,
        timeout: float = 10.0,
    ):
        self.executable = executable
        self.args = list(args) if args else [QUERY_PLACEHOLDER]
        self.bin_env = bin_env
        self.candidates = candidates or []
        self.timeout = timeout

    def command_for(self, query: str) -> list[str]:
        exe = resolve_binary(self.executable, self.bin_env, self.candidates)
        return [exe, *(arg.replace(QUERY_PLACEHOLDER, query) for arg in self.args)]

    def fetch(self, query: str) -> Any:
        cmd = self.command_for(query)
        logger.debug("Running backend: {}", cmd[0])
        try:
            proc = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                stdin=subprocess.DEVNULL,
            )
        except subprocess.TimeoutExpired as e:
            raise BackendTimeout(f"{Path(cmd[0]).name} timed out after {self.timeout}s") from e
        except OSError as e:
            raise BackendMissing(f"cannot execute {cmd[0]}: {e}") from e

        if proc.returncode != 0:
            message = proc.stderr.strip() or f"{Path(cmd[0]).name} exited with status {proc.returncode}"
            raise classify_message(message)

        output = proc.stdout.strip()
        if not output:
            raise MalformedPayload(f"{Path(cmd[0]).name} returned empty response")
        try:
            return json.loads(output)
        except json.JSONDecodeError as e:
            raise MalformedPayload(f"{Path(cmd[0]).name} returned malformed JSON: {e.msg}") from e
