"""Query policy - normalize input and stop trivial queries early."""

import os
from typing import TextIO

from coalesce.models.feedback import placeholder
from coalesce.models.query import Continue, NormalizedQuery, Terminal
from settings import MIN_QUERY_CHARS

QUERY_ENV_VARS = ("alfred_workflow_query", "ALFRED_WORKFLOW_QUERY")


def resolve_query_input(
    raw: str | None,
    environ: dict[str, str] | None = None,
    stdin: TextIO | None = None,
) -> str:
    """CLI argument first, then the launcher's query env vars, then piped stdin."""
    env = os.environ if environ is None else environ
    if raw == "(null)":
        raw = ""
    if raw:
        return raw
    for name in QUERY_ENV_VARS:
        if env.get(name):
            return env[name]
    if stdin is not None and not stdin.isatty():
        return stdin.read()
    return ""


class QueryPolicy:
    """Classify raw input as Continue(query) or Terminal(placeholder)."""

    def __init__(
        self,
        workflow: str,
        min_chars: int = MIN_QUERY_CHARS,
        params: dict[str, str] | None = None,
        label: str = "results",
    ):
        self.workflow = workflow
        self.min_chars = min_chars if isinstance(min_chars, int) and min_chars >= 0 else MIN_QUERY_CHARS
        self.params = dict(params or {})
        self.label = label

    def classify(self, raw: str | None) -> Continue | Terminal:
        text = (raw or "").strip()

        if not text:
            return Terminal(placeholder("Enter a search query", f"Type keywords to search {self.label}."))

        if len(text) < self.min_chars:
            return Terminal(
                placeholder(
                    f"Keep typing ({self.min_chars}+ chars)",
                    f"Type at least {self.min_chars} characters before searching {self.label}.",
                )
            )

        return Continue(NormalizedQuery(text=text, workflow=self.workflow, params=self.params))
