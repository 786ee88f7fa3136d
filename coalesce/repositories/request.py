"""Latest-request marker - which key the live launcher session wants now."""

import os
import uuid

from loguru import logger
from pydantic import ValidationError

from coalesce.models.query import NormalizedQuery
from coalesce.models.state import LatestRequest
from coalesce.repositories.base import BaseStore


class RequestStore(BaseStore):
    """Single marker file per workflow, rewritten only when the key changes."""

    def read(self) -> LatestRequest | None:
        raw = self.state.read_text(self.state.request_path)
        if not raw:
            return None
        try:
            return LatestRequest.model_validate_json(raw)
        except ValidationError:
            return None

    def record(self, query: NormalizedQuery) -> LatestRequest:
        """Mark `query` as the latest request; keeps `updated_at` for a repeat."""
        current = self.read()
        if current is not None and current.key == query.key:
            return current

        now = self.now()
        request = LatestRequest(
            key=query.key,
            query=query.text,
            seq=f"{now:.3f}.{os.getpid()}.{uuid.uuid4().hex[:8]}",
            updated_at=now,
        )
        self.state.ensure()
        self.state.atomic_write(self.state.request_path, request.model_dump_json())
        logger.debug("Latest request: {!r}", query.text)
        return request

    def clear(self) -> None:
        self.state.request_path.unlink(missing_ok=True)
