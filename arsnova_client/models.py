"""Value types exchanged with the ARSnova service."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .errors import ArsnovaParseError


class FeedbackValue(Enum):
    """A feedback vote, ranked from best to worst.

    The letter members are aliases of the named ranks, so
    ``FeedbackValue.A is FeedbackValue.VERY_GOOD``.
    """

    VERY_GOOD = 0
    GOOD = 1
    BAD = 2
    VERY_BAD = 3
    A = 0
    B = 1
    C = 2
    D = 3

    @classmethod
    def parse(cls, label: str | int) -> FeedbackValue:
        """Resolve a rank name, letter alias or ordinal to a vote.

        Raises:
            ValueError: If the label names no rank
        """
        if isinstance(label, int) and not isinstance(label, bool):
            return cls(label)
        normalized = str(label).strip().upper().replace("-", "_").replace(" ", "_")
        if normalized.isdigit():
            return cls(int(normalized))
        try:
            return cls[normalized]
        except KeyError:
            raise ValueError(f"Unknown feedback value: {label!r}") from None


@dataclass(frozen=True, slots=True)
class Feedback:
    """Cumulative feedback tally of a room."""

    very_good: int = 0
    good: int = 0
    bad: int = 0
    very_bad: int = 0

    def __post_init__(self) -> None:
        for count in self.values:
            if isinstance(count, bool) or not isinstance(count, int) or count < 0:
                raise ValueError(f"Feedback counts must be non-negative ints: {count!r}")

    @classmethod
    def from_values(cls, values: Sequence[int]) -> Feedback:
        """Build a snapshot from counts ordered very good to very bad."""
        if len(values) != 4:
            raise ValueError(f"Expected 4 feedback counts, got {len(values)}")
        return cls(*values)

    @property
    def values(self) -> tuple[int, int, int, int]:
        return (self.very_good, self.good, self.bad, self.very_bad)

    def count(self, value: FeedbackValue) -> int:
        """Return the number of votes for one rank."""
        return self.values[value.value]

    def count_votes(self) -> int:
        return sum(self.values)


@dataclass(frozen=True, slots=True)
class RoomInfo:
    """Identity of a resolved room."""

    id: str
    short_id: str
    name: str
    description: str = ""

    @classmethod
    def from_membership(cls, data: Any) -> RoomInfo:
        """Parse a request-membership response body."""
        try:
            room_id = data["id"]
            short_id = data["shortId"]
            name = data["name"]
        except (KeyError, TypeError) as err:
            raise ArsnovaParseError(f"Invalid membership response: {err!r}") from err
        if not all(isinstance(field, str) for field in (room_id, short_id, name)):
            raise ArsnovaParseError("Invalid membership response: non-string field")
        return cls(id=room_id, short_id=short_id, name=name)


@dataclass(frozen=True, slots=True)
class RoomStats:
    """Point-in-time statistics of a room."""

    content_count: int
    ack_comment_count: int
    room_user_count: int

    @classmethod
    def from_summary(cls, data: Any) -> RoomStats:
        """Parse the first entry of a room summary response."""
        try:
            stats = data[0]["stats"]
            return cls(
                content_count=int(stats["contentCount"]),
                ack_comment_count=int(stats["ackCommentCount"]),
                room_user_count=int(stats["roomUserCount"]),
            )
        except (IndexError, KeyError, TypeError, ValueError) as err:
            raise ArsnovaParseError(f"Invalid room summary: {err!r}") from err
