"""Seed the three tubes with starting threads."""
import json
from pathlib import Path

from triple_helix.scheduler import TubeScheduler
from triple_helix.thread_ids import placeholder_content_id

CONTENT_DIR = Path(__file__).parent / "content"


def load_threads(path: Path | None = None) -> list[dict]:
    """Read thread definitions ({tube, threadId, stitches}) from threads.json."""
    data = json.loads((path or CONTENT_DIR / "threads.json").read_text())
    return data["threads"]


def _is_placeholder_only(tube, tube_number: int) -> bool:
    current = tube.current()
    return len(tube) == 1 and current is not None and current.content_id == placeholder_content_id(tube_number)


def unseeded_tubes(scheduler: TubeScheduler) -> list[int]:
    """Tube numbers that are empty or hold only a fallback stitch."""
    return [
        tube_number
        for tube_number, tube in sorted(scheduler.state.tubes.items())
        if tube.is_empty() or _is_placeholder_only(tube, tube_number)
    ]


def is_seeded(scheduler: TubeScheduler) -> bool:
    """Check whether every tube holds real content rather than a fallback stitch."""
    return not unseeded_tubes(scheduler)


def seed_tubes(
    scheduler: TubeScheduler,
    threads: list[dict] | None = None,
    tube_numbers: list[int] | None = None,
) -> int:
    """Initialize listed tubes with their thread's stitches. Returns tubes seeded.

    When tube_numbers is given, threads for any other tube are skipped so
    existing progress there is left alone.
    """
    if threads is None:
        threads = load_threads()
    if tube_numbers is not None:
        threads = [t for t in threads if t["tube"] in tube_numbers]
    for thread in threads:
        scheduler.initialize_tube_with_content(thread["tube"], thread["threadId"], thread["stitches"])
    return len(threads)
