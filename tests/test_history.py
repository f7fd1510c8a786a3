"""TurnHistory window tests."""

from neuro_intake.models.session import Turn, TurnHistory


def _turns(n):
    roles = ["model", "user"]
    return [Turn(role=roles[i % 2], text=f"t{i}") for i in range(n)]


class TestOldestFirstEviction:

    def test_under_capacity_keeps_everything(self):
        history = TurnHistory(max_turns=4)
        for t in _turns(3):
            history.append(t)
        assert [t.text for t in history.turns] == ["t0", "t1", "t2"]

    def test_overflow_drops_oldest(self):
        history = TurnHistory(max_turns=4, pin_routing_turn=False)
        for t in _turns(6):
            history.append(t)
        assert [t.text for t in history.turns] == ["t2", "t3", "t4", "t5"]
        assert len(history) == 4

    def test_clear(self):
        history = TurnHistory()
        history.append(Turn(role="user", text="x"))
        history.clear()
        assert len(history) == 0


class TestPinnedRoutingTurn:

    def test_first_user_turn_survives(self):
        history = TurnHistory(max_turns=4, pin_routing_turn=True)
        for t in _turns(6):
            history.append(t)
        texts = [t.text for t in history.turns]
        assert texts == ["t0", "t1", "t4", "t5"], f"Unexpected window: {texts}"

    def test_tiny_window_degrades_to_plain_eviction(self):
        history = TurnHistory(max_turns=2, pin_routing_turn=True)
        for t in _turns(4):
            history.append(t)
        assert [t.text for t in history.turns] == ["t2", "t3"]

    def test_no_user_turn_yet(self):
        history = TurnHistory(max_turns=2, pin_routing_turn=True)
        for i in range(3):
            history.append(Turn(role="model", text=f"m{i}"))
        assert [t.text for t in history.turns] == ["m1", "m2"]
