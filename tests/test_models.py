"""Tests for data model classes and snapshot serialization."""
from triple_helix.models import CompletionRecord, PositionEntry, SchedulerState, Tube


def _ids(tube):
    return {p: e.content_id for p, e in tube.entries()}


def test_position_entry_defaults():
    e = PositionEntry(content_id="a")
    assert e.skip_number == 3
    assert e.distractor_level == "L1"
    assert e.completed is False


def test_scheduler_state_defaults():
    s = SchedulerState()
    assert sorted(s.tubes) == [1, 2, 3]
    assert all(t.is_empty() for t in s.tubes.values())
    assert s.active_tube_number == 1
    assert s.cycle_count == 0
    assert s.completed_stitches == []
    assert s.total_points == 0
    assert s.user_id == "anonymous"


def test_state_dict_uses_camel_case_and_string_keys():
    s = SchedulerState()
    s.tubes[1] = Tube(thread_id="thread-T1-001", positions={0: PositionEntry("a"), 4: PositionEntry("b")})
    data = s.to_dict()
    assert data["activeTubeNumber"] == 1
    assert data["tubes"]["1"]["threadId"] == "thread-T1-001"
    assert data["tubes"]["1"]["positions"]["4"] == {
        "contentId": "b", "skipNumber": 3, "distractorLevel": "L1", "completed": False,
    }


def test_state_from_dict_restores_sparse_positions():
    s = SchedulerState()
    s.tubes[2] = Tube(thread_id="t", positions={0: PositionEntry("a"), 7: PositionEntry("b", skip_number=10)})
    s.completed_stitches.append(CompletionRecord("a", "t", 5, 5, timestamp=123))
    s.total_points = 5
    restored = SchedulerState.from_dict(s.to_dict())
    assert _ids(restored.tubes[2]) == {0: "a", 7: "b"}
    assert restored.tubes[2].positions[7].skip_number == 10
    assert restored.completed_stitches[0].timestamp == 123
    assert restored.completed_stitches[0].perfect
    assert restored.total_points == 5


def test_from_dict_accepts_stitch_id_alias():
    e = PositionEntry.from_dict({"stitchId": "old", "skipNumber": 5, "distractorLevel": "L2"})
    assert e.content_id == "old"
    assert e.skip_number == 5


def test_from_dict_normalizes_bad_values():
    e = PositionEntry.from_dict({"contentId": "x", "skipNumber": 0, "distractorLevel": "L9"})
    assert e.skip_number == 1
    assert e.distractor_level == "L1"


def test_from_dict_unreadable_active_tube():
    s = SchedulerState.from_dict({"activeTubeNumber": "banana"})
    assert s.active_tube_number == 0


def test_legacy_stitch_list_is_migrated():
    legacy = {
        "userId": "u1",
        "activeTubeNumber": 2,
        "tubes": {
            "1": {
                "threadId": "thread-T1-001",
                "currentStitchId": "s2",
                "stitches": [
                    {"id": "s1", "position": 1, "skipNumber": 5, "distractorLevel": "L2"},
                    {"id": "s2", "position": 0, "skipNumber": 3, "distractorLevel": "L1"},
                    {"id": "s3", "position": 2},
                ],
            },
            "2": {"threadId": "thread-T2-001", "stitches": []},
        },
    }
    s = SchedulerState.from_dict(legacy)
    assert s.user_id == "u1"
    assert s.active_tube_number == 2
    assert _ids(s.tubes[1]) == {0: "s2", 1: "s1", 2: "s3"}
    assert s.tubes[1].positions[1].distractor_level == "L2"
    assert s.tubes[2].is_empty()
    assert s.tubes[3].is_empty()


def test_tube_insert_front_shifts_contiguous_run():
    t = Tube(positions={0: PositionEntry("a"), 1: PositionEntry("b"), 4: PositionEntry("d")})
    t.insert_front(PositionEntry("z"))
    assert _ids(t) == {0: "z", 1: "a", 2: "b", 4: "d"}


def test_tube_promote_lowest():
    t = Tube(positions={3: PositionEntry("c"), 5: PositionEntry("e")})
    assert t.promote_lowest() == 3
    assert _ids(t) == {0: "c", 5: "e"}
    assert t.promote_lowest() is None


def test_tube_swap_with_missing_slot():
    t = Tube(positions={2: PositionEntry("c")})
    t.swap(0, 2)
    assert _ids(t) == {0: "c"}


def test_tube_find_returns_lowest_position():
    t = Tube(positions={0: PositionEntry("a"), 2: PositionEntry("b"), 6: PositionEntry("b")})
    assert t.find("b") == 2
    assert t.find("nope") is None
    assert t.queued() == [2, 6]
    assert t.max_position() == 6


def test_from_dict_drops_unreadable_position_keys():
    tube = Tube.from_dict({
        "threadId": "t",
        "positions": {"0": {"contentId": "A"}, "x": {"contentId": "B"}, "2": {"contentId": "C"}},
    })
    assert _ids(tube) == {0: "A", 2: "C"}


def test_from_dict_drops_unknown_tube_keys():
    s = SchedulerState.from_dict({
        "tubes": {
            "one": {"positions": {"0": {"contentId": "A"}}},
            "4": {"positions": {"0": {"contentId": "D"}}},
            "2": {"positions": {"0": {"contentId": "B"}}},
        },
    })
    assert sorted(s.tubes) == [1, 2, 3]
    assert _ids(s.tubes[2]) == {0: "B"}
    assert s.tubes[1].is_empty()
