"""
Script filter CLI

`search` is the one-shot process the launcher spawns on every keystroke.
It always prints exactly one feedback JSON document and exits 0.
`worker` is the detached background worker spawned by `search`.
"""

import re
import sys
from dataclasses import replace
from pathlib import Path
from typing import Annotated, Optional

import typer
from loguru import logger
from pydantic import ValidationError

from coalesce.container import Container
from coalesce.models.feedback import Feedback, placeholder
from coalesce.repositories import CacheStore, LockStore, RequestStore, StateDir
from coalesce.services.policy import resolve_query_input
from coalesce.services.worker import Worker, WorkerJob
from providers import BackendSpec
from settings import (
    LOG_LEVEL,
    MIN_CHARS_RANGE,
    MIN_QUERY_CHARS,
    WORKER_LOG_LEVEL,
    CoalesceSettings,
    clamp_int,
    resolve_cache_base,
)
from settings.logging import setup_logging

app = typer.Typer(
    name="sf-coalesce",
    help="Coalescing and caching layer for launcher script filters.",
    add_completion=False,
    no_args_is_help=True,
)


def default_env_prefix(workflow: str) -> str:
    return re.sub(r"[^A-Za-z0-9]+", "_", workflow).strip("_").upper()


def parse_params(raw: list[str]) -> dict[str, str]:
    """`k=v` pairs folded into the cache key."""
    params: dict[str, str] = {}
    for item in raw:
        name, sep, value = item.partition("=")
        if not sep or not name.strip():
            raise ValueError(f"--param must look like key=value, got {item!r}")
        params[name.strip()] = value.strip()
    return params


def parse_headers(raw: list[str]) -> dict[str, str]:
    """`Name: value` pairs sent with every HTTP request."""
    headers: dict[str, str] = {}
    for item in raw:
        name, sep, value = item.partition(":")
        if not sep or not name.strip():
            raise ValueError(f"--header must look like 'Name: value', got {item!r}")
        headers[name.strip()] = value.strip()
    return headers


def backend_spec(
    command: str | None,
    url: str | None,
    backend: str | None,
    args: list[str],
    bin_env: str | None,
    candidates: list[str] | None = None,
    headers: dict[str, str] | None = None,
) -> BackendSpec:
    selected = [name for name, value in (("command", command), ("http", url), ("import", backend)) if value]
    if len(selected) != 1:
        raise ValueError("choose exactly one of --command, --url or --backend")
    kind = selected[0]
    if headers and kind != "http":
        raise ValueError("--header only applies to --url backends")
    if candidates and kind != "command":
        raise ValueError("--candidate only applies to --command backends")
    target = {"command": command, "http": url, "import": backend}[kind]
    return BackendSpec(
        kind=kind,
        target=target,
        args=args if kind == "command" else [],
        bin_env=bin_env,
        candidates=candidates or [],
        headers=headers or {},
    )


def emit(feedback: Feedback) -> None:
    typer.echo(feedback.to_json())


@app.command("search")
def search_command(
    query: Annotated[Optional[str], typer.Argument(help="Raw query text (falls back to launcher env vars).")] = None,
    workflow: Annotated[str, typer.Option("--workflow", "-w", help="Workflow identity; scopes cache and locks.")] = "workflow",
    env_prefix: Annotated[Optional[str], typer.Option("--env-prefix", help="Prefix of tuning env vars.")] = None,
    min_chars: Annotated[Optional[int], typer.Option("--min-chars", help="Shortest query sent to the backend.")] = None,
    cache_dir: Annotated[Optional[Path], typer.Option("--cache-dir", help="Scratch base directory.")] = None,
    label: Annotated[str, typer.Option("--label", help="Backend name shown in placeholders.")] = "Search",
    param: Annotated[Optional[list[str]], typer.Option("--param", help="Result-affecting key=value.")] = None,
    command: Annotated[Optional[str], typer.Option("--command", help="Backend executable.")] = None,
    arg: Annotated[Optional[list[str]], typer.Option("--arg", help="Executable argument; {query} is substituted.")] = None,
    bin_env: Annotated[Optional[str], typer.Option("--bin-env", help="Env var overriding the executable path.")] = None,
    candidate: Annotated[Optional[list[str]], typer.Option("--candidate", help="Extra executable path to try.")] = None,
    url: Annotated[Optional[str], typer.Option("--url", help="JSON endpoint template with {query}.")] = None,
    header: Annotated[Optional[list[str]], typer.Option("--header", help="HTTP header as 'Name: value'.")] = None,
    backend: Annotated[Optional[str], typer.Option("--backend", help="Python backend as module:attr.")] = None,
) -> None:
    """Resolve one keystroke: cached result, pending rerun, or placeholder."""
    setup_logging(level=LOG_LEVEL)
    try:
        spec = backend_spec(command, url, backend, arg or [], bin_env, candidate, parse_headers(header or []))
        params = parse_params(param or [])
    except (ValueError, ValidationError) as e:
        logger.error("Invalid invocation: {}", e)
        emit(placeholder(f"Invalid {label} workflow config", str(e).splitlines()[0]))
        return

    settings = CoalesceSettings.from_env(env_prefix if env_prefix is not None else default_env_prefix(workflow))
    if min_chars is not None:
        settings = replace(settings, min_chars=clamp_int(min_chars, MIN_QUERY_CHARS, MIN_CHARS_RANGE))

    container = Container(
        workflow=workflow,
        backend=spec,
        settings=settings,
        cache_base=resolve_cache_base(cache_dir),
        params=params,
        label=label,
    )
    emit(container.run(resolve_query_input(query, stdin=sys.stdin)))


@app.command("worker", hidden=True)
def worker_command(
    job: Annotated[str, typer.Option("--job", help="Serialized worker job.")],
) -> None:
    """Background worker entry; spawned detached by `search`."""
    try:
        parsed = WorkerJob.model_validate_json(job)
    except ValidationError as e:
        setup_logging(level=WORKER_LOG_LEVEL)
        logger.error("Invalid worker job: {}", e)
        raise typer.Exit(1) from e

    state = StateDir(Path(parsed.cache_base), parsed.workflow)
    setup_logging(level=WORKER_LOG_LEVEL, to_file=True, log_dir=state.log_dir)
    outcome = Worker(parsed).run()
    logger.info("Worker finished: {!r} -> {}", parsed.query, outcome)


@app.command("clear-cache")
def clear_cache_command(
    workflow: Annotated[str, typer.Option("--workflow", "-w", help="Workflow identity.")] = "workflow",
    cache_dir: Annotated[Optional[Path], typer.Option("--cache-dir", help="Scratch base directory.")] = None,
) -> None:
    """Remove cached results, locks and the latest-request marker."""
    setup_logging(level=LOG_LEVEL)
    state = StateDir(resolve_cache_base(cache_dir), workflow)
    removed = CacheStore(state).clear()
    released = LockStore(state).clear()
    RequestStore(state).clear()
    typer.echo(f"Cleared {removed} cached results and {released} locks for {state.workflow}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
