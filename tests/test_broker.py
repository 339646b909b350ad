import logging
from unittest.mock import Mock

from rover_control.broker import AccessBroker
from rover_control.errors import ALREADY_WAITING, BAD_REQUEST, NOT_IN_CONTROL

RESOURCE = "valuable resource"


def make(**kwargs):
    dispatch = Mock()
    notify = Mock()
    return AccessBroker(RESOURCE, dispatch, notify, **kwargs), dispatch, notify


def test_register_one_caller_is_granted():
    b, _dispatch, notify = make()
    assert b.register("c1") is True
    notify.assert_called_once_with("c1")
    assert b.holder() == "c1"


def test_register_two_callers_grants_only_first():
    b, _dispatch, notify = make()
    b.register("c1")
    b.register("c2")
    notify.assert_called_once_with("c1")


def test_command_from_holder_is_dispatched_once():
    b, dispatch, _notify = make()
    b.register("c1")
    assert b.submit_command("command", "c1") is True
    dispatch.assert_called_once_with(RESOURCE, "command")


def test_command_from_waiting_caller_is_dropped(caplog):
    b, dispatch, _notify = make()
    b.register("c1")
    b.register("c2")
    with caplog.at_level(logging.WARNING):
        assert b.submit_command("command", "c2") is False
    dispatch.assert_not_called()
    assert "not in control" in caplog.text


def test_command_from_unregistered_caller_is_dropped():
    b, dispatch, _notify = make()
    b.register("c1")
    assert b.submit_command("command", "stranger") is False
    dispatch.assert_not_called()
    assert b.registry.waiting() == ("c1",)


def test_command_with_empty_line_is_dropped():
    b, dispatch, _notify = make()
    assert b.submit_command("command", "c1") is False
    dispatch.assert_not_called()


def test_malformed_commands_never_dispatch(caplog):
    b, dispatch, _notify = make()
    b.register("c1")
    with caplog.at_level(logging.WARNING):
        assert b.submit_command(None, "c1") is False
        assert b.submit_command("forward", None) is False
    dispatch.assert_not_called()
    assert "malformed command" in caplog.text


def test_full_handover_scenario():
    b, dispatch, notify = make()

    b.register("A")
    notify.assert_called_once_with("A")

    b.register("B")
    assert notify.call_count == 1

    b.submit_command("forward", "B")
    assert dispatch.call_count == 0

    b.submit_command("forward", "A")
    dispatch.assert_called_once_with(RESOURCE, "forward")

    b.unregister("A")
    assert notify.call_count == 2
    notify.assert_called_with("B")

    b.submit_command("forward", "B")
    assert dispatch.call_count == 2

    b.unregister("B")
    assert notify.call_count == 2
    assert b.registry.size() == 0
    assert b.holder() is None


def test_register_then_unregister_leaves_empty_line():
    b, _dispatch, notify = make()
    b.register("A")
    assert b.unregister("A") is True
    notify.assert_called_once_with("A")
    assert b.registry.size() == 0


def test_unregister_unknown_is_ignored():
    b, _dispatch, notify = make()
    b.register("A")
    assert b.unregister("B") is False
    assert b.unregister(None) is False
    assert notify.call_count == 1
    assert b.holder() == "A"


def test_unregister_waiting_caller_keeps_holder():
    b, dispatch, notify = make()
    b.register("A")
    b.register("B")
    b.register("C")
    b.unregister("B")
    assert notify.call_count == 1
    b.unregister("A")
    notify.assert_called_with("C")
    assert b.submit_command("left", "C") is True
    dispatch.assert_called_once_with(RESOURCE, "left")


def test_duplicate_register_is_rejected():
    on_reject = Mock()
    b, _dispatch, notify = make(on_reject=on_reject)
    b.register("A")
    b.register("B")
    assert b.register("A") is False
    assert b.register("B") is False
    assert b.registry.waiting() == ("A", "B")
    assert notify.call_count == 1
    codes = [call.args[1].code for call in on_reject.call_args_list]
    assert codes == [ALREADY_WAITING, ALREADY_WAITING]


def test_register_none_is_rejected():
    on_reject = Mock()
    b, _dispatch, notify = make(on_reject=on_reject)
    assert b.register(None) is False
    notify.assert_not_called()
    assert on_reject.call_args.args[1].code == BAD_REQUEST


def test_reject_callback_receives_sender_and_reason():
    on_reject = Mock()
    b, _dispatch, _notify = make(on_reject=on_reject)
    b.register("A")
    b.register("B")
    b.submit_command("forward", "B")
    who, error = on_reject.call_args.args
    assert who == "B"
    assert error.code == NOT_IN_CONTROL


def test_submit_returns_broker_verdict_not_dispatch_result():
    dispatch = Mock(return_value="ignored")
    b = AccessBroker(RESOURCE, dispatch)
    b.register("A")
    assert b.submit_command("forward", "A") is True
    assert b.submit_command("forward", "B") is False
