import random

from triple_helix.models import SchedulerState
from triple_helix.resilient import ResilientScheduler


def _ids(scheduler, tube_number):
    return {p: e.content_id for p, e in scheduler.get_tube(tube_number).entries()}


def _assert_tubes_healthy(scheduler):
    for tube_number in (1, 2, 3):
        tube = scheduler.get_tube(tube_number)
        assert tube.current() is not None
        ids = [e.content_id for _, e in tube.entries()]
        assert len(ids) == len(set(ids))


# --- Non-empty tube guarantee ---


def test_empty_state_gets_fallback_content():
    s = ResilientScheduler()
    for n in (1, 2, 3):
        tube = s.get_tube(n)
        assert tube.thread_id == f"thread-T{n}-001"
        entry = tube.current()
        assert entry.content_id == f"stitch-T{n}-001-01"
        assert entry.skip_number == 3
        assert entry.distractor_level == "L1"
    assert s.get_current_stitch().content_id == "stitch-T1-001-01"


def test_existing_thread_id_kept_on_empty_tube():
    s = ResilientScheduler({"tubes": {"2": {"threadId": "mine", "positions": {}}}})
    assert s.get_thread_for_tube(2) == "mine"
    assert s.get_tube(2).current() is not None


def test_missing_position_0_promotes_lowest_entry(make_state):
    s = ResilientScheduler(make_state({1: [None, None, "B", None, "C"]}))
    assert _ids(s, 1) == {0: "B", 4: "C"}


def test_cycle_into_wiped_tube_is_repaired(make_state):
    s = ResilientScheduler(make_state({1: ["a"], 2: ["b"], 3: ["c"]}))
    s.get_tube(2).positions.clear()
    stitch = s.cycle_tubes()
    assert stitch.content_id == "stitch-T2-001-01"
    assert s.get_current_tube_number() == 2


def test_get_current_stitch_repairs_invalid_active_tube(make_state, saved):
    s = ResilientScheduler(make_state({1: ["a"], 2: ["b"], 3: ["c"]}, active=0), save=saved)
    assert s.get_current_stitch().content_id == "a"
    assert s.get_current_tube_number() == 1
    assert len(saved) == 1


# --- Infinite play ---


def test_single_stitch_infinite_play(make_state):
    s = ResilientScheduler(make_state({1: ["A"]}, infinitePlayMode=True))
    for i in range(5):
        nxt = s.handle_stitch_completion("thread-T1-001", "A", 10, 10)
        assert nxt.content_id == "A"
        assert _ids(s, 1) == {0: "A"}
        assert len(s.state.completed_stitches) == i + 1
    entry = s.get_tube(1).current()
    assert entry.skip_number == 100
    assert entry.distractor_level == "L3"


def test_infinite_play_only_applies_to_single_stitch_tubes(make_state):
    s = ResilientScheduler(make_state({1: ["A", "B"]}, infinitePlayMode=True))
    s.handle_stitch_completion("thread-T1-001", "A", 10, 10)
    assert _ids(s, 1) == {0: "B", 3: "A"}


def test_infinite_play_flag_defaults():
    assert ResilientScheduler().state.infinite_play_mode is True
    assert ResilientScheduler({"infinitePlayMode": False}).state.infinite_play_mode is False
    assert ResilientScheduler(SchedulerState()).state.infinite_play_mode is False
    assert ResilientScheduler({"infinitePlayMode": False}, infinite_play_mode=True).state.infinite_play_mode


# --- Thread and stitch recovery ---


def test_thread_recovered_from_id_pattern(make_state):
    state = make_state({1: ["a"], 2: ["A", "B", "C"], 3: ["c"]})
    state["tubes"]["2"]["threadId"] = "stale"
    s = ResilientScheduler(state)
    s.handle_stitch_completion("thread-T2-009", "A", 3, 3)
    assert s.get_thread_for_tube(2) == "thread-T2-009"
    assert _ids(s, 2) == {0: "B", 1: "C", 3: "A"}


def test_unresolvable_thread_uses_active_tube(make_state):
    s = ResilientScheduler(make_state({1: ["a"], 2: ["b"], 3: ["A", "B", "C"]}, active=3))
    s.handle_stitch_completion("mystery-thread", "A", 3, 3)
    assert _ids(s, 3) == {0: "B", 1: "C", 3: "A"}
    assert s.state.completed_stitches[-1].thread_id == "mystery-thread"


def test_unknown_stitch_is_added_at_front(make_state):
    s = ResilientScheduler(make_state({1: ["A", "B"], 2: ["x"], 3: ["y"]}))
    nxt = s.handle_stitch_completion("thread-T1-001", "Z", 4, 4)
    assert nxt.content_id == "A"
    assert _ids(s, 1) == {0: "A", 1: "B", 3: "Z"}
    assert s.state.total_points == 4


def test_unknown_stitch_imperfect_stays_at_front(make_state):
    s = ResilientScheduler(make_state({1: ["A", "B"], 2: ["x"], 3: ["y"]}))
    nxt = s.handle_stitch_completion("thread-T1-001", "Z", 1, 4)
    assert nxt.content_id == "Z"
    assert _ids(s, 1) == {0: "Z", 1: "A", 2: "B"}
    assert s.get_tube(1).current().skip_number == 1


def test_seeding_replaces_fallback():
    s = ResilientScheduler()
    s.initialize_tube_with_content(2, "t-2", ["x", "y", "z"])
    assert _ids(s, 2) == {0: "x", 1: "y", 2: "z"}


# --- Invariants under arbitrary use ---


def test_tubes_stay_healthy_under_random_operations(make_state):
    rng = random.Random(1234)
    s = ResilientScheduler(
        make_state({1: [f"a{i}" for i in range(8)], 2: ["b0", "b1"], 3: ["c0"]}),
        infinite_play_mode=False,
    )
    for _ in range(300):
        op = rng.random()
        if op < 0.3:
            s.cycle_tubes()
        elif op < 0.95:
            tube_number = s.get_current_tube_number()
            thread_id = s.get_thread_for_tube(tube_number)
            content_id = s.get_current_stitch().content_id
            total = rng.randint(1, 20)
            score = total if rng.random() < 0.7 else rng.randint(0, total - 1)
            s.handle_stitch_completion(thread_id, content_id, score, total)
        else:
            s.handle_stitch_completion("thread-T9", f"new{rng.randint(0, 3)}", 1, 1)
        _assert_tubes_healthy(s)


def test_corrupted_snapshot_keys_are_repaired():
    s = ResilientScheduler({
        "tubes": {
            "1": {"threadId": "thread-T1-001", "positions": {"0": {"contentId": "A"}, "x": {"contentId": "B"}}},
            "one": {"positions": {"0": {"contentId": "Z"}}},
        },
    })
    assert _ids(s, 1) == {0: "A"}
    assert sorted(s.state.tubes) == [1, 2, 3]
    assert s.get_tube(2).current().content_id == "stitch-T2-001-01"
