import pytest

from rover_control.errors import DuplicateParticipantError
from rover_control.registry import WaiterRegistry


def make():
    calls = []
    return WaiterRegistry(calls.append), calls


def test_append_to_empty_notifies_once():
    r, calls = make()
    r.append("a")
    assert calls == ["a"]
    assert r.size() == 1


def test_append_to_non_empty_does_not_notify():
    r, calls = make()
    r.append("a")
    r.append("b")
    assert calls == ["a"]
    assert r.size() == 2


def test_append_without_callback():
    r = WaiterRegistry()
    r.append("a")
    assert r.size() == 1
    assert r.peek() == "a"


def test_peek_follows_arrival_order():
    r, _ = make()
    for p in ("a", "b", "c", "d"):
        r.append(p)
    assert r.peek() == "a"
    r.remove("a")
    assert r.peek() == "b"
    r.remove("c")
    assert r.peek() == "b"
    r.remove("b")
    assert r.peek() == "d"


def test_peek_empty_is_none():
    assert WaiterRegistry().peek() is None


def test_remove_head_notifies_new_head():
    r, calls = make()
    r.append("a")
    r.append("b")
    assert r.remove("a") is True
    assert calls == ["a", "b"]
    assert r.size() == 1


def test_remove_non_head_does_not_notify():
    r, calls = make()
    r.append("a")
    r.append("b")
    r.remove("b")
    assert calls == ["a"]
    assert r.size() == 1


def test_remove_absent_is_noop():
    r, calls = make()
    r.append("a")
    assert r.remove("zzz") is False
    assert calls == ["a"]
    assert r.size() == 1


def test_remove_last_does_not_notify():
    r, calls = make()
    r.append("a")
    r.remove("a")
    assert calls == ["a"]
    assert r.size() == 0
    assert r.peek() is None


def test_duplicate_append_is_rejected_without_side_effects():
    r, calls = make()
    r.append("a")
    r.append("b")
    with pytest.raises(DuplicateParticipantError):
        r.append("a")
    with pytest.raises(ValueError):
        r.append("b")
    assert r.waiting() == ("a", "b")
    assert calls == ["a"]


def test_identity_is_equality_based():
    class Conn:
        pass

    c1, c2 = Conn(), Conn()
    r, calls = make()
    r.append(c1)
    r.append(c2)
    r.remove(c1)
    assert calls == [c1, c2]
    assert c2 in r
    assert c1 not in r
    assert len(r) == 1
