"""Tests for direction labels and key tracking."""

import itertools
from unittest.mock import Mock

import pytest

from imitation_agent.control.directions import DIRECTION_ORDER, DirectionState, binarize, decode, encode
from imitation_agent.control.keyboard import KeyStateTracker


def test_encode_fixed_order():
    assert encode(DirectionState(up=True, right=False, down=True, left=False)) == (1, 0, 1, 0)


def test_encode_nothing_held():
    assert encode(DirectionState()) == (0, 0, 0, 0)


def test_round_trip_every_state():
    for flags in itertools.product([False, True], repeat=4):
        state = DirectionState(*flags)
        assert decode(encode(state)) == state


@pytest.mark.parametrize("label", [(1, 0, 0), (1, 0, 0, 0, 0), (1, 0, 2, 0), (0.5, 0, 0, 0)])
def test_decode_rejects_invalid_labels(label):
    with pytest.raises(ValueError):
        decode(label)


def test_binarize_thresholds_each_output():
    assert binarize([0.7, 0.1, 0.55, 0.49]) == (1, 0, 1, 0)
    assert binarize([0.7, 0.1, 0.55, 0.49], threshold=0.6) == (1, 0, 0, 0)


def test_state_set_and_clear():
    state = DirectionState()
    state.set("left", True)
    assert state.left
    assert str(state) == "left"
    with pytest.raises(KeyError):
        state.set("jump", True)
    state.clear()
    assert encode(state) == (0, 0, 0, 0)


def test_snapshot_is_independent():
    state = DirectionState(up=True)
    snap = state.snapshot()
    state.up = False
    assert snap.up is True


class TestKeyStateTracker:
    def test_arrows_update_shared_state(self):
        state = DirectionState()
        tracker = KeyStateTracker(state)

        tracker.press("up")
        tracker.press("right")
        assert encode(state) == (1, 1, 0, 0)

        tracker.release("up")
        assert encode(state) == (0, 1, 0, 0)

    def test_hotkeys_fire_on_release(self):
        callback = Mock()
        tracker = KeyStateTracker(DirectionState(), hotkeys={"t": callback})

        tracker.press("t")
        callback.assert_not_called()
        tracker.release("t")
        callback.assert_called_once_with()

    def test_unknown_keys_are_ignored(self):
        state = DirectionState()
        tracker = KeyStateTracker(state)
        tracker.press(None)
        tracker.release("q")
        assert encode(state) == (0, 0, 0, 0)

    def test_hotkeys_go_through_loop_when_given(self):
        loop = Mock()
        callback = Mock()
        tracker = KeyStateTracker(DirectionState(), hotkeys={"e": callback}, loop=loop)
        tracker.release("e")
        loop.call_soon_threadsafe.assert_called_once_with(callback)
        callback.assert_not_called()

    def test_key_name_handles_special_and_char_keys(self):
        special = Mock(spec=["name"])
        special.name = "up"
        assert KeyStateTracker.key_name(special) == "up"
        char_key = Mock(spec=["char"])
        char_key.char = "T"
        assert KeyStateTracker.key_name(char_key) == "t"

    def test_stop_releases_everything(self):
        state = DirectionState(up=True, left=True)
        KeyStateTracker(state).stop()
        assert encode(state) == (0, 0, 0, 0)


def test_direction_order_is_stable():
    assert DIRECTION_ORDER == ("up", "right", "down", "left")
