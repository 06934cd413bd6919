import pytest


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    db_path = str(tmp_path / "test_scheduler.db")
    return db_path


@pytest.fixture
def make_state():
    """Build a snapshot dict from {tube_number: [content ids]} (position = list index).

    A None in the list leaves that position empty.
    """

    def _make(tubes, active=1, **extra):
        state = {"activeTubeNumber": active, "tubes": {}}
        for tube_number, content_ids in tubes.items():
            state["tubes"][str(tube_number)] = {
                "threadId": f"thread-T{tube_number}-001",
                "positions": {
                    str(i): {"contentId": c, "skipNumber": 3, "distractorLevel": "L1", "completed": False}
                    for i, c in enumerate(content_ids)
                    if c is not None
                },
            }
        state.update(extra)
        return state

    return _make


@pytest.fixture
def saved():
    """A save hook that collects every snapshot it receives."""

    class SaveRecorder(list):
        def __call__(self, state):
            self.append(state)

    return SaveRecorder()
