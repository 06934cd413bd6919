"""Scheduler variant that repairs bad state instead of failing.

Every tube is guaranteed an entry at position 0 before it is read. Completion
events for unknown threads or stitches are routed to a best-guess tube, and
tubes holding a single stitch can be replayed indefinitely.
"""
from typing import Optional

from loguru import logger

from triple_helix.config import get_settings
from triple_helix.models import TUBE_NUMBERS, PositionEntry, SchedulerState, Tube
from triple_helix.scheduler import SaveHook, TubeScheduler
from triple_helix.thread_ids import parse_tube_number, placeholder_content_id, placeholder_thread_id


class ResilientScheduler(TubeScheduler):

    def __init__(
        self,
        initial_state=None,
        save: Optional[SaveHook] = None,
        infinite_play_mode: Optional[bool] = None,
    ):
        super().__init__(initial_state, save)
        if infinite_play_mode is None:
            carries_flag = isinstance(initial_state, SchedulerState) or (
                isinstance(initial_state, dict) and "infinitePlayMode" in initial_state
            )
            if not carries_flag:
                self.state.infinite_play_mode = get_settings().infinite_play_mode
        else:
            self.state.infinite_play_mode = infinite_play_mode
        self._ensure_minimum_content()

    def _ensure_tube(self, tube_number: int) -> bool:
        """Make sure tube_number has an entry at position 0. Returns True if repaired."""
        tube = self.state.tubes.get(tube_number)
        if tube is None:
            tube = self.state.tubes[tube_number] = Tube()

        if tube.is_empty():
            logger.warning("Tube {} is empty, adding fallback content", tube_number)
            if not tube.thread_id:
                tube.thread_id = placeholder_thread_id(tube_number)
            tube.positions = {0: PositionEntry(placeholder_content_id(tube_number))}
            return True

        if tube.current() is None:
            moved_from = tube.promote_lowest()
            logger.warning("Tube {} had no position 0, moved position {} up", tube_number, moved_from)
            return True
        return False

    def _ensure_minimum_content(self) -> bool:
        repaired = False
        for tube_number in TUBE_NUMBERS:
            repaired = self._ensure_tube(tube_number) or repaired
        return repaired

    def _ensure_active_tube(self) -> bool:
        if self.state.active_tube_number not in TUBE_NUMBERS:
            logger.error("Invalid active tube {!r}, resetting to 1", self.state.active_tube_number)
            self.state.active_tube_number = 1
            return True
        return False

    def get_current_stitch(self) -> PositionEntry:
        repaired = self._ensure_active_tube()
        repaired = self._ensure_tube(self.state.active_tube_number) or repaired
        if repaired:
            self._save_state()
        return super().get_current_stitch()

    def _check_tube(self, tube_number: int) -> None:
        if self._ensure_tube(tube_number):
            logger.error("Tube {} had no content during cycling, recovered", tube_number)

    def handle_stitch_completion(
        self, thread_id: str, content_id: str, score: int, total_questions: int
    ) -> PositionEntry:
        self._ensure_active_tube()
        self._ensure_minimum_content()
        return super().handle_stitch_completion(thread_id, content_id, score, total_questions)

    def _resolve_tube(self, thread_id: str) -> int:
        tube_number = self.find_tube_by_thread_id(thread_id)
        if tube_number is not None:
            return tube_number

        recovered = parse_tube_number(thread_id)
        if recovered is not None:
            logger.warning("Thread {} not found, re-associating it with tube {}", thread_id, recovered)
            self.state.tubes[recovered].thread_id = thread_id
            return recovered

        active = self.state.active_tube_number
        logger.warning("Thread {} not found, using active tube {}", thread_id, active)
        return active

    def _resolve_entry(self, tube_number: int, content_id: str) -> PositionEntry:
        tube = self.state.tubes[tube_number]
        if tube.find(content_id) is None:
            logger.warning(
                "Stitch {} not found in tube {}, adding it at position 0", content_id, tube_number
            )
            tube.insert_front(PositionEntry(content_id))
            if not tube.thread_id:
                tube.thread_id = placeholder_thread_id(tube_number)
        return super()._resolve_entry(tube_number, content_id)

    def advance_stitch_in_tube(
        self, tube_number: int, skip_number: Optional[int] = None
    ) -> Optional[PositionEntry]:
        if tube_number not in TUBE_NUMBERS:
            logger.error("Cannot advance unknown tube {!r}", tube_number)
            return None
        self._ensure_tube(tube_number)
        tube = self.state.tubes[tube_number]
        if self.state.infinite_play_mode and len(tube) == 1:
            logger.info(
                "Only one stitch in tube {}, keeping {} at position 0", tube_number, tube.current().content_id
            )
            self._save_state()
            return self.get_current_stitch()
        return super().advance_stitch_in_tube(tube_number, skip_number)

    def select_tube(self, tube_number: int) -> bool:
        selected = super().select_tube(tube_number)
        if selected and self._ensure_tube(tube_number):
            self._save_state()
        return selected
