"""Position-based tube scheduler: tube cycling and stitch reordering."""
from typing import Callable, Optional

from loguru import logger

from triple_helix.models import (
    TUBE_NUMBERS,
    CompletionRecord,
    PositionEntry,
    SchedulerState,
    Tube,
    now_ms,
)
from triple_helix.progression import is_perfect, progression_update

SaveHook = Callable[[dict], None]


class EmptyContentError(ValueError):
    """Raised when a tube is seeded with no content ids."""


def advance_positions(positions: dict[int, PositionEntry], skip_number: int) -> dict[int, PositionEntry]:
    """Push the position-0 entry ``skip_number`` slots back in its queue.

    The nearest queued entry (normally position 1) becomes position 0. Other
    entries at or before the skip slot move forward one place to close the
    gap; entries beyond it keep their positions. The pushed-back entry lands
    exactly on ``skip_number``.

    Raises ValueError if there is no position 0 or no queued entry to promote.
    """
    if 0 not in positions:
        raise ValueError("no entry at position 0")
    queued = sorted(p for p in positions if p > 0)
    if not queued:
        raise ValueError("no queued entry to promote")
    skip_number = max(1, skip_number)

    new_positions = {0: positions[queued[0]]}
    # An entry sitting on the skip slot itself shifts forward with the rest
    for position in queued[1:]:
        target = position - 1 if position <= skip_number else position
        new_positions[target] = positions[position]
    new_positions[skip_number] = positions[0]
    return new_positions


class TubeScheduler:
    """Tracks three tubes of content and decides what the learner sees next.

    The scheduler owns its ``SchedulerState`` and mutates it in place. After
    every mutation it hands a snapshot to ``save`` (if given); persistence is
    fire-and-forget from the scheduler's point of view.
    """

    def __init__(self, initial_state=None, save: Optional[SaveHook] = None):
        if isinstance(initial_state, SchedulerState):
            self.state = initial_state.snapshot()
        elif initial_state:
            self.state = SchedulerState.from_dict(initial_state)
        else:
            self.state = SchedulerState()
        self._save = save
        if self.state.last_updated is None:
            self.state.last_updated = now_ms()

    # -- accessors -------------------------------------------------------

    def get_state(self) -> dict:
        return self.state.to_dict()

    def get_current_tube_number(self) -> int:
        return self.state.active_tube_number

    def get_tube(self, tube_number: int) -> Optional[Tube]:
        return self.state.tubes.get(tube_number)

    def get_thread_for_tube(self, tube_number: int) -> Optional[str]:
        tube = self.get_tube(tube_number)
        return tube.thread_id if tube else None

    def get_stitches_for_tube(self, tube_number: int) -> list[dict]:
        tube = self.get_tube(tube_number)
        if tube is None:
            return []
        return [{"position": p, **entry.to_dict()} for p, entry in tube.entries()]

    def get_current_tube_stitches(self) -> list[dict]:
        return self.get_stitches_for_tube(self.state.active_tube_number)

    def get_stitch_from_tube(self, tube_number: int, content_id: str) -> Optional[dict]:
        tube = self.get_tube(tube_number)
        if tube is None:
            return None
        position = tube.find(content_id)
        if position is None:
            return None
        return {"position": position, **tube.positions[position].to_dict()}

    def get_current_stitch(self) -> Optional[PositionEntry]:
        tube = self.get_tube(self.state.active_tube_number)
        return tube.current() if tube else None

    def get_cycle_count(self) -> int:
        return self.state.cycle_count

    # -- tube selection --------------------------------------------------

    def select_tube(self, tube_number: int) -> bool:
        if tube_number not in TUBE_NUMBERS:
            logger.error("Tube {} not found", tube_number)
            return False
        self.state.active_tube_number = tube_number
        self._save_state()
        return True

    def cycle_tubes(self) -> Optional[PositionEntry]:
        """Advance the active tube 1 -> 2 -> 3 -> 1 and return its current stitch."""
        previous = self.state.active_tube_number
        if previous in (1, 2):
            self.state.active_tube_number = previous + 1
        elif previous == 3:
            self.state.active_tube_number = 1
            self.state.cycle_count += 1
        else:
            logger.error("Invalid active tube {!r}, resetting to 1", previous)
            self.state.active_tube_number = 1
        logger.debug("Cycled from tube {} to tube {}", previous, self.state.active_tube_number)

        self._check_tube(self.state.active_tube_number)
        self._save_state()
        return self.get_current_stitch()

    def _check_tube(self, tube_number: int) -> None:
        tube = self.get_tube(tube_number)
        if tube is None or tube.current() is None:
            logger.error("Tube {} has no content at position 0", tube_number)

    # -- completion ------------------------------------------------------

    def find_tube_by_thread_id(self, thread_id: str) -> Optional[int]:
        for tube_number, tube in sorted(self.state.tubes.items()):
            if tube.thread_id == thread_id:
                return tube_number
        return None

    def handle_stitch_completion(
        self, thread_id: str, content_id: str, score: int, total_questions: int
    ) -> Optional[PositionEntry]:
        """Record a finished stitch and reschedule it.

        A perfect score pushes the stitch back by its skip number and moves
        it up both ladders. Anything less resets its skip number to 1 and
        leaves it at the front of the tube.
        """
        logger.info(
            "Completion of {} in thread {}: {}/{}", content_id, thread_id, score, total_questions
        )
        tube_number = self._resolve_tube(thread_id)
        if tube_number is None:
            return None
        entry = self._resolve_entry(tube_number, content_id)
        if entry is None:
            return None

        self.state.completed_stitches.append(
            CompletionRecord(content_id, thread_id, score, total_questions)
        )
        self.state.total_points += score

        perfect = is_perfect(score, total_questions)
        skip_used = entry.skip_number
        updated = progression_update(perfect, entry.skip_number, entry.distractor_level)
        entry.skip_number = updated["skip_number"]
        entry.distractor_level = updated["distractor_level"]

        if perfect:
            entry.completed = True
            logger.debug(
                "Perfect pass on {}: skip {} -> {}, level {}",
                content_id, skip_used, entry.skip_number, entry.distractor_level,
            )
            return self.advance_stitch_in_tube(tube_number, skip_used)

        logger.debug("Imperfect pass on {}: skip reset to 1", content_id)
        self._save_state()
        return self.get_current_stitch()

    def _resolve_tube(self, thread_id: str) -> Optional[int]:
        tube_number = self.find_tube_by_thread_id(thread_id)
        if tube_number is None:
            logger.error("Thread {} not found in any tube", thread_id)
        return tube_number

    def _resolve_entry(self, tube_number: int, content_id: str) -> Optional[PositionEntry]:
        """Return the entry for content_id, brought to position 0 if it was queued."""
        tube = self.state.tubes[tube_number]
        current = tube.current()
        if current is not None and current.content_id == content_id:
            return current
        position = tube.find(content_id)
        if position is None:
            logger.error("Stitch {} not found in tube {}", content_id, tube_number)
            return None
        logger.warning(
            "Stitch {} was at position {} of tube {}, promoting it", content_id, position, tube_number
        )
        tube.swap(0, position)
        return tube.current()

    def advance_stitch_in_tube(
        self, tube_number: int, skip_number: Optional[int] = None
    ) -> Optional[PositionEntry]:
        """Move the tube's position-0 stitch back by its skip number."""
        tube = self.get_tube(tube_number)
        if tube is None or tube.current() is None:
            logger.error("Cannot advance tube {}: no stitch at position 0", tube_number)
            return None
        current = tube.current()
        if skip_number is None:
            skip_number = current.skip_number

        if not tube.queued():
            # The only possible successor is a copy of this stitch, so it stays put
            logger.warning("No successor in tube {}, keeping {} at position 0", tube_number, current.content_id)
            tube.positions = {0: current}
        else:
            tube.positions = advance_positions(tube.positions, skip_number)
            logger.debug(
                "Tube {} advanced: {}",
                tube_number,
                ", ".join(f"{p}={e.content_id}" for p, e in tube.entries()[:5]),
            )
        self._save_state()
        return self.get_current_stitch()

    # -- seeding and reset -----------------------------------------------

    def initialize_tube_with_content(self, tube_number: int, thread_id: str, content_ids: list[str]) -> None:
        """Replace a tube's queue with content_ids in order, starting at position 0."""
        if tube_number not in TUBE_NUMBERS:
            raise ValueError(f"Tube number must be one of {TUBE_NUMBERS}, got {tube_number!r}")
        if not content_ids:
            raise EmptyContentError(f"Cannot initialize tube {tube_number} with no content")
        self.state.tubes[tube_number] = Tube(
            thread_id=thread_id,
            positions={i: PositionEntry(content_id) for i, content_id in enumerate(content_ids)},
        )
        logger.info("Initialized tube {} with {} stitches", tube_number, len(content_ids))
        self._save_state()

    def reset_state(self) -> None:
        """Clear all tubes and progress, keeping the user id."""
        self.state = SchedulerState(
            user_id=self.state.user_id,
            infinite_play_mode=self.state.infinite_play_mode,
        )
        logger.info("Scheduler state reset for {}", self.state.user_id)
        self._save_state()

    def to_legacy_format(self) -> dict:
        """Export tubes as the older list-of-stitches format.

        Loading the export back compacts each tube: stitches keep their order
        but gaps between positions close. Use get_state() for snapshots.
        """
        legacy = self.get_state()
        legacy["tubes"] = {}
        for tube_number, tube in sorted(self.state.tubes.items()):
            current = tube.current()
            legacy["tubes"][str(tube_number)] = {
                "threadId": tube.thread_id,
                "currentStitchId": current.content_id if current else None,
                "position": 0,
                "stitches": [
                    {
                        "id": entry.content_id,
                        "position": position,
                        "skipNumber": entry.skip_number,
                        "distractorLevel": entry.distractor_level,
                        "completed": entry.completed,
                    }
                    for position, entry in tube.entries()
                ],
            }
        return legacy

    # -- persistence -----------------------------------------------------

    def _save_state(self) -> None:
        self.state.last_updated = now_ms()
        if self._save is None:
            return
        try:
            self._save(self.get_state())
        except Exception as e:
            logger.warning("Could not save scheduler state for {}: {}", self.state.user_id, e)
