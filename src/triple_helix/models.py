"""Data classes for the tube scheduler state."""
import time
from dataclasses import dataclass, field, replace
from typing import Optional

from loguru import logger

TUBE_NUMBERS = (1, 2, 3)
DISTRACTOR_LEVELS = ("L1", "L2", "L3")
DEFAULT_SKIP_NUMBER = 3
DEFAULT_DISTRACTOR_LEVEL = "L1"


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class PositionEntry:
    content_id: str
    skip_number: int = DEFAULT_SKIP_NUMBER
    distractor_level: str = DEFAULT_DISTRACTOR_LEVEL
    completed: bool = False

    def copy(self) -> "PositionEntry":
        return replace(self)

    def to_dict(self) -> dict:
        return {
            "contentId": self.content_id,
            "skipNumber": self.skip_number,
            "distractorLevel": self.distractor_level,
            "completed": self.completed,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PositionEntry":
        # Older snapshots name the content reference "stitchId"
        content_id = data.get("contentId", data.get("stitchId", data.get("id")))
        skip = data.get("skipNumber")
        if skip is None:
            skip = DEFAULT_SKIP_NUMBER
        level = data.get("distractorLevel") or DEFAULT_DISTRACTOR_LEVEL
        if level not in DISTRACTOR_LEVELS:
            logger.warning("Unknown distractor level {!r} for {}, using L1", level, content_id)
            level = DEFAULT_DISTRACTOR_LEVEL
        return cls(
            content_id=str(content_id),
            skip_number=max(1, int(skip)),
            distractor_level=level,
            completed=bool(data.get("completed", False)),
        )


@dataclass
class Tube:
    """One content queue: a sparse map of position -> entry.

    Gaps between positions are allowed. Position 0 is the entry currently
    presented to the learner.
    """

    thread_id: Optional[str] = None
    positions: dict[int, PositionEntry] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.positions)

    def is_empty(self) -> bool:
        return not self.positions

    def current(self) -> Optional[PositionEntry]:
        return self.positions.get(0)

    def occupied(self) -> list[int]:
        return sorted(self.positions)

    def queued(self) -> list[int]:
        return [p for p in self.occupied() if p > 0]

    def max_position(self) -> int:
        return max(self.positions) if self.positions else -1

    def entries(self) -> list[tuple[int, PositionEntry]]:
        return [(p, self.positions[p]) for p in self.occupied()]

    def find(self, content_id: str) -> Optional[int]:
        """Lowest position holding content_id, or None."""
        for position in self.occupied():
            if self.positions[position].content_id == content_id:
                return position
        return None

    def swap(self, a: int, b: int) -> None:
        first = self.positions.pop(a, None)
        second = self.positions.pop(b, None)
        if first is not None:
            self.positions[b] = first
        if second is not None:
            self.positions[a] = second

    def insert_front(self, entry: PositionEntry) -> None:
        """Put entry at position 0, pushing the run that starts at 0 back one slot."""
        end = 0
        while end in self.positions:
            end += 1
        for position in range(end, 0, -1):
            self.positions[position] = self.positions.pop(position - 1)
        self.positions[0] = entry

    def promote_lowest(self) -> Optional[int]:
        """Move the lowest occupied entry to position 0. Returns the old position."""
        if self.is_empty() or 0 in self.positions:
            return None
        lowest = self.occupied()[0]
        self.positions[0] = self.positions.pop(lowest)
        return lowest

    def to_dict(self) -> dict:
        return {
            "threadId": self.thread_id,
            "positions": {str(p): e.to_dict() for p, e in self.entries()},
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Tube":
        if data is None:
            return cls()
        if isinstance(data.get("stitches"), list):
            return cls._from_legacy(data)
        positions = {}
        for key, entry in (data.get("positions") or {}).items():
            try:
                position = int(key)
            except (TypeError, ValueError):
                position = -1
            if position < 0 or not entry:
                logger.warning("Dropping invalid position {!r} while loading tube", key)
                continue
            positions[position] = PositionEntry.from_dict(entry)
        return cls(thread_id=data.get("threadId"), positions=positions)

    @classmethod
    def _from_legacy(cls, data: dict) -> "Tube":
        """Migrate the list-of-stitches tube format into positions."""
        stitches = sorted(
            data["stitches"],
            key=lambda s: s.get("position") if s.get("position") is not None else 999,
        )
        if not stitches:
            return cls(thread_id=data.get("threadId"))
        current_id = data.get("currentStitchId") or stitches[0].get("id")
        current = next((s for s in stitches if s.get("id") == current_id), None)
        ordered = ([current] if current else []) + [s for s in stitches if s is not current]
        positions = {i: PositionEntry.from_dict(s) for i, s in enumerate(ordered)}
        logger.info("Migrated legacy tube {} with {} stitches", data.get("threadId"), len(positions))
        return cls(thread_id=data.get("threadId"), positions=positions)


@dataclass
class CompletionRecord:
    content_id: str
    thread_id: Optional[str]
    score: int
    total_questions: int
    timestamp: int = field(default_factory=now_ms)

    @property
    def perfect(self) -> bool:
        return self.score == self.total_questions

    def to_dict(self) -> dict:
        return {
            "contentId": self.content_id,
            "threadId": self.thread_id,
            "score": self.score,
            "totalQuestions": self.total_questions,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CompletionRecord":
        return cls(
            content_id=data.get("contentId", data.get("stitchId")),
            thread_id=data.get("threadId"),
            score=int(data.get("score", 0)),
            total_questions=int(data.get("totalQuestions", 0)),
            timestamp=int(data.get("timestamp") or now_ms()),
        )


def _empty_tubes() -> dict[int, Tube]:
    return {n: Tube() for n in TUBE_NUMBERS}


@dataclass
class SchedulerState:
    tubes: dict[int, Tube] = field(default_factory=_empty_tubes)
    active_tube_number: int = 1
    cycle_count: int = 0
    completed_stitches: list[CompletionRecord] = field(default_factory=list)
    total_points: int = 0
    infinite_play_mode: bool = False
    user_id: str = "anonymous"
    last_updated: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "userId": self.user_id,
            "activeTubeNumber": self.active_tube_number,
            "cycleCount": self.cycle_count,
            "tubes": {str(n): t.to_dict() for n, t in sorted(self.tubes.items())},
            "completedStitches": [r.to_dict() for r in self.completed_stitches],
            "totalPoints": self.total_points,
            "infinitePlayMode": self.infinite_play_mode,
            "lastUpdated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SchedulerState":
        tubes = _empty_tubes()
        for key, tube in (data.get("tubes") or {}).items():
            try:
                tube_number = int(key)
            except (TypeError, ValueError):
                tube_number = None
            if tube_number not in TUBE_NUMBERS:
                logger.warning("Dropping unknown tube {!r} while loading state", key)
                continue
            tubes[tube_number] = Tube.from_dict(tube)
        try:
            active = int(data.get("activeTubeNumber", 1))
        except (TypeError, ValueError):
            logger.warning("Unreadable active tube {!r} in snapshot", data.get("activeTubeNumber"))
            active = 0
        return cls(
            tubes=tubes,
            active_tube_number=active,
            cycle_count=int(data.get("cycleCount") or 0),
            completed_stitches=[
                CompletionRecord.from_dict(r) for r in data.get("completedStitches") or []
            ],
            total_points=int(data.get("totalPoints") or 0),
            infinite_play_mode=bool(data.get("infinitePlayMode", False)),
            user_id=data.get("userId") or "anonymous",
            last_updated=data.get("lastUpdated", data.get("last_updated")),
        )

    def snapshot(self) -> "SchedulerState":
        return SchedulerState.from_dict(self.to_dict())
