"""Launcher-facing response schemas."""

from pydantic import BaseModel, Field


class Item(BaseModel):
    """One result row. Unknown launcher keys (icon, mods, ...) are kept."""

    title: str
    subtitle: str | None = None
    arg: str | None = None
    valid: bool | None = None
    uid: str | None = None
    autocomplete: str | None = None

    class Config:
        extra = "allow"


class Feedback(BaseModel):
    """Script filter response document."""

    items: list[Item] = Field(default_factory=list)
    rerun: float | None = None

    class Config:
        extra = "allow"

    def to_json(self) -> str:
        return self.model_dump_json(exclude_none=True)

    @property
    def is_pending(self) -> bool:
        return self.rerun is not None


def placeholder(title: str, subtitle: str = "") -> Feedback:
    """Single non-actionable row."""
    return Feedback(items=[Item(title=title, subtitle=subtitle, valid=False)])


def pending(title: str, subtitle: str, rerun: float) -> Feedback:
    """Non-actionable row plus a re-invocation interval."""
    feedback = placeholder(title, subtitle)
    feedback.rerun = rerun
    return feedback
