"""AfterScheduler against a fake Tk widget."""
import itertools

from breathe_core import AfterScheduler, BreathPattern, SessionState, SessionTimer

from conftest import FakeClock


class FakeWidget:
    """Records after() calls; run_pending() fires everything queued so far."""

    def __init__(self):
        self._ids = itertools.count(1)
        self.pending = {}
        self.cancelled = []
        self.delays = []

    def after(self, ms, fn):
        after_id = f"after#{next(self._ids)}"
        self.pending[after_id] = fn
        self.delays.append(ms)
        return after_id

    def after_cancel(self, after_id):
        self.cancelled.append(after_id)
        self.pending.pop(after_id, None)

    def run_pending(self):
        queued, self.pending = self.pending, {}
        for fn in queued.values():
            fn()


class DeadWidget(FakeWidget):
    def after_cancel(self, after_id):
        raise RuntimeError('can\'t invoke "after" command: application has been destroyed')


def test_job_rearms_after_each_run():
    widget = FakeWidget()
    calls = []
    AfterScheduler(widget).schedule_repeating(16, lambda: calls.append(1))
    for _ in range(3):
        widget.run_pending()
    assert len(calls) == 3
    assert len(widget.pending) == 1
    assert set(widget.delays) == {16}


def test_cancel_drops_the_queued_slot():
    widget = FakeWidget()
    sched = AfterScheduler(widget)
    calls = []
    job = sched.schedule_repeating(16, lambda: calls.append(1))
    widget.run_pending()
    sched.cancel(job)
    assert widget.pending == {}
    widget.run_pending()
    assert calls == [1]


def test_cancel_is_idempotent():
    widget = FakeWidget()
    sched = AfterScheduler(widget)
    job = sched.schedule_repeating(16, lambda: None)
    sched.cancel(job)
    sched.cancel(job)
    sched.cancel(None)
    assert len(widget.cancelled) == 1


def test_callback_returning_false_stops_the_job():
    widget = FakeWidget()
    AfterScheduler(widget).schedule_repeating(16, lambda: False)
    widget.run_pending()
    assert widget.pending == {}


def test_cancel_from_inside_the_callback():
    widget = FakeWidget()
    sched = AfterScheduler(widget)
    calls = []

    def cb():
        calls.append(1)
        sched.cancel(job)

    job = sched.schedule_repeating(16, cb)
    widget.run_pending()
    widget.run_pending()
    assert calls == [1]
    assert widget.pending == {}


def test_stale_slot_never_fires_after_cancel():
    widget = FakeWidget()
    sched = AfterScheduler(widget)
    calls = []
    job = sched.schedule_repeating(16, lambda: calls.append(1))
    queued = dict(widget.pending)
    sched.cancel(job)
    for fn in queued.values():  # slot already handed to the event loop
        fn()
    assert calls == []


def test_cancel_on_destroyed_root_is_logged(caplog):
    widget = DeadWidget()
    sched = AfterScheduler(widget)
    job = sched.schedule_repeating(16, lambda: None)
    caplog.set_level("DEBUG", logger="breathe_core")
    sched.cancel(job)
    assert "after_cancel failed" in caplog.text


def test_timer_runs_on_the_after_loop():
    widget = FakeWidget()
    clock = FakeClock()
    timer = SessionTimer(1, BreathPattern(), scheduler=AfterScheduler(widget), clock=clock)
    timer.start()
    for _ in range(60):
        clock.advance(1)
        widget.run_pending()
    assert timer.state == SessionState.FINISHED
    assert widget.pending == {}

    timer.start()
    assert widget.pending == {}
