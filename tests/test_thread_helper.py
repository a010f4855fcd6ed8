import threading

import pytest

from locengine.thread_helper import THREAD_NAME, ThreadHelper


def test_init_failure_raises_and_thread_ends():
    helper = ThreadHelper()
    with pytest.raises(RuntimeError):
        helper.launch(lambda ctx: -1, None, None, None, None, None)
    assert helper.exit_requested is True
    helper.join()


def test_init_exception_counts_as_failure():
    def boom(ctx):
        raise ValueError("bad")

    helper = ThreadHelper()
    with pytest.raises(RuntimeError):
        helper.launch(boom, None, None, None, None, None)
    helper.join()


def test_no_proc_waits_for_unblock():
    posted = threading.Event()
    helper = ThreadHelper()
    helper.launch(None, None, None, lambda ctx: posted.set(), None, None)
    assert not posted.is_set()
    helper.unblock()
    helper.join()
    assert posted.is_set()


def test_custom_create_thread_receives_name():
    seen = []

    def create(name, start):
        seen.append(name)
        thread = threading.Thread(target=start)
        thread.start()
        return thread

    helper = ThreadHelper()
    helper.launch(None, None, None, None, create, None)
    assert helper.signal_block() is True
    helper.unblock()
    helper.join()
    assert seen == [THREAD_NAME]


def test_none_context_keeps_previous():
    helper = ThreadHelper()
    helper.context = "old"
    seen = []
    helper.launch(lambda ctx: seen.append(ctx), None, None, None, None, None)
    helper.unblock()
    helper.join()
    assert seen == ["old"]


def test_signal_ready_then_wait_returns_true():
    helper = ThreadHelper()
    helper.signal_ready()
    assert helper.signal_wait() is True


def test_signal_wait_returns_false_after_unblock():
    helper = ThreadHelper()
    helper.unblock()
    assert helper.signal_wait() is False


def test_signal_block_returns_previous_state():
    helper = ThreadHelper()
    assert helper.signal_block() is False
    helper.signal_ready()
    assert helper.signal_block() is True
    assert helper.ready is False


def test_signal_wait_wakes_on_ready_from_other_thread():
    helper = ThreadHelper()
    timer = threading.Timer(0.05, helper.signal_ready)
    timer.start()
    try:
        assert helper.signal_wait() is True
    finally:
        timer.join(timeout=5)


def test_join_without_launch_raises():
    with pytest.raises(RuntimeError):
        ThreadHelper().join()