"""Per-viewer comment visibility.

A comment is classified for a given viewer as VISIBLE or HIDDEN_BANNED (the
viewer has banned its author). The classification is computed on every read
and never stored. Viewers may opt out of seeing some hide types entirely, in
which case those comments are dropped from the listing.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Protocol, TypeVar
from uuid import UUID


class HideType(IntEnum):
    """Why a comment is hidden from the viewer. Code 1 is reserved."""

    VISIBLE = 0
    HIDDEN_BANNED = 2


class Authored(Protocol):
    author_id: UUID


C = TypeVar("C", bound=Authored)


@dataclass(frozen=True)
class Viewer:
    """What the resolver needs to know about the reader."""

    user_id: UUID
    banned_user_ids: frozenset[UUID] = field(default_factory=frozenset)
    hide_comment_types: frozenset[HideType] = field(default_factory=frozenset)

    @classmethod
    def build(
        cls,
        user_id: UUID,
        banned_user_ids: Iterable[UUID] = (),
        hide_comment_types: Iterable[int] = (),
    ) -> "Viewer":
        hide: set[HideType] = set()
        for code in hide_comment_types:
            try:
                hide.add(HideType(code))
            except ValueError:
                # Unknown codes are kept out rather than rejected
                continue
        return cls(
            user_id=user_id,
            banned_user_ids=frozenset(banned_user_ids),
            hide_comment_types=frozenset(hide),
        )


def classify_comment(comment: Authored, viewer: Viewer | None) -> HideType:
    """Classify one comment for `viewer`. Anonymous readers see everything."""
    if viewer is None:
        return HideType.VISIBLE
    if comment.author_id in viewer.banned_user_ids:
        return HideType.HIDDEN_BANNED
    return HideType.VISIBLE


def resolve_comment_visibility(
    comments: Sequence[C], viewer: Viewer | None
) -> list[tuple[C, HideType]]:
    """Classify `comments` and drop the ones the viewer opted out of.

    Input order is preserved. VISIBLE comments are never dropped.
    """
    hidden = viewer.hide_comment_types if viewer is not None else frozenset()
    resolved: list[tuple[C, HideType]] = []
    for comment in comments:
        hide_type = classify_comment(comment, viewer)
        if hide_type is not HideType.VISIBLE and hide_type in hidden:
            continue
        resolved.append((comment, hide_type))
    return resolved
