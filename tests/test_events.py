import pytest

from grouprate import logger
from grouprate.feedback import FeedbackScheduler
from grouprate.station import FeedbackSample


def test_events_run_in_time_then_schedule_order(scheduler):
    order = []
    scheduler.scheduleAt(5.0, order.append, 'b')
    scheduler.scheduleAt(1.0, order.append, 'a')
    scheduler.scheduleAt(5.0, order.append, 'c')
    scheduler.run()
    assert order == ['a', 'b', 'c']
    assert scheduler.now == 5.0
    assert scheduler.stats['executed'] == 3


def test_schedule_after_is_relative(scheduler):
    times = []
    scheduler.scheduleAt(10.0, lambda: scheduler.scheduleAfter(
        2.5, lambda: times.append(scheduler.now)))
    scheduler.run()
    assert times == [12.5]


def test_cancelled_events_do_not_fire(scheduler):
    fired = []
    handle = scheduler.scheduleAfter(1.0, fired.append, 1)
    scheduler.scheduleAfter(2.0, fired.append, 2)
    assert len(scheduler) == 2
    scheduler.cancel(handle)
    scheduler.cancel(handle)
    scheduler.cancel(None)
    assert not handle.pending
    assert len(scheduler) == 1
    scheduler.run()
    assert fired == [2]
    assert scheduler.stats['cancelled'] == 1


def test_fired_handle_is_no_longer_pending(scheduler):
    handle = scheduler.scheduleAfter(1.0, lambda: None)
    scheduler.run()
    assert not handle.pending
    scheduler.cancel(handle)
    assert scheduler.stats['cancelled'] == 0


def test_run_until_stops_and_advances(scheduler):
    fired = []
    scheduler.scheduleAt(3.0, fired.append, 3)
    scheduler.scheduleAt(8.0, fired.append, 8)
    scheduler.run(until=5.0)
    assert fired == [3]
    assert scheduler.now == 5.0
    assert logger.simTime == '5.00'
    scheduler.run(until=8.0)
    assert fired == [3, 8]


def test_step_on_empty_queue(scheduler):
    assert not scheduler.step()


def test_past_and_negative_times_rejected(scheduler):
    scheduler.run(until=10.0)
    with pytest.raises(ValueError):
        scheduler.scheduleAt(9.0, lambda: None)
    with pytest.raises(ValueError):
        scheduler.scheduleAfter(-1.0, lambda: None)


def test_cancelled_head_does_not_overshoot_until(scheduler):
    fired = []
    early = scheduler.scheduleAt(5.0, fired.append, 'early')
    scheduler.scheduleAt(20.0, fired.append, 'late')
    scheduler.cancel(early)
    scheduler.run(until=10.0)
    assert fired == []
    assert scheduler.now == 10.0
    scheduler.run(until=20.0)
    assert fired == ['late']


def test_stopped_feedback_then_run_until_limit(scheduler):
    sent = []
    fb = FeedbackScheduler(scheduler,
                           lambda: FeedbackSample(None, 10.0, 10.0, 0, 1),
                           lambda payload, dest: sent.append(scheduler.now))
    fired = []
    fb.onGroupFrame(3)
    scheduler.scheduleAt(500.0, fired.append, 'later')
    scheduler.run(until=150.0)
    fb.stopPeriodicFeedback()
    scheduler.run(until=300.0)
    assert scheduler.now == 300.0
    assert fired == []
    assert sent == [0.0, 100.0]
