"""Session statistics and tube summaries."""
from triple_helix.models import SchedulerState


def get_mastery_label(skip_number: int) -> str:
    if skip_number >= 25:
        return "MASTERED"
    elif skip_number >= 10:
        return "FAMILIAR"
    elif skip_number >= 3:
        return "LEARNING"
    return "NEW"


def get_mastery_color(skip_number: int) -> str:
    if skip_number >= 25:
        return "green"
    elif skip_number >= 10:
        return "yellow"
    elif skip_number >= 3:
        return "cyan"
    return "red"


def get_completion_stats(state: SchedulerState) -> dict:
    records = state.completed_stitches
    perfect = sum(1 for r in records if r.perfect)
    by_thread = {}
    for r in records:
        by_thread[r.thread_id] = by_thread.get(r.thread_id, 0) + 1
    return {
        "completions": len(records),
        "perfect": perfect,
        "perfect_rate": round(perfect / len(records) * 100, 1) if records else 0.0,
        "total_points": state.total_points,
        "cycle_count": state.cycle_count,
        "by_thread": by_thread,
    }


def get_tube_summary(state: SchedulerState) -> list[dict]:
    results = []
    for tube_number, tube in sorted(state.tubes.items()):
        current = tube.current()
        results.append({
            "tube_number": tube_number,
            "thread_id": tube.thread_id,
            "entries": len(tube),
            "current": current.content_id if current else None,
            "max_position": tube.max_position(),
            "mastered": sum(1 for _, e in tube.entries() if e.skip_number >= 25),
            "active": tube_number == state.active_tube_number,
        })
    return results
