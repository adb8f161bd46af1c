"""
Discrete-event scheduler driving engine, feedback and network callbacks.

Classes
-------
EventHandle
    Cancellable reference to one scheduled callback.
EventScheduler
    Heap-ordered single-threaded event loop in simulated milliseconds.

Notes
-----
Events are ordered by (time, seq) where seq is a monotonically increasing
tie-breaker, so events scheduled for the same time run in scheduling order.
Before each callback the scheduler writes the event time into logger.simTime,
which the log record factory attaches to every record.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Tuple
import heapq
from grouprate import logger

#-----------------------------------------------------------------------------#

# Global Variables
log = logger.addLog('events')

###############################################################################

@dataclass
class EventHandle:
    """
    Reference to a scheduled event.

    Attributes
    ----------
    time : float
        Simulated time the event fires (ms).
    seq : int
        Scheduling order tie-breaker.
    callback : callable
        Function called when the event fires.
    args : tuple
        Positional arguments passed to callback.
    cancelled : bool
        True once cancelled; the scheduler then discards the event.
    """

    __slots__ = ('time', 'seq', 'callback', 'args', 'cancelled')

    time: float
    seq: int
    callback: Callable[..., Any]
    args: Tuple[Any, ...]
    cancelled: bool

    def cancel(self)->None:
        """Prevent the event from firing."""
        self.cancelled = True

    @property
    def pending(self)->bool:
        """True while the event may still fire."""
        return not self.cancelled

###############################################################################

class EventScheduler:
    """
    Single-threaded discrete-event loop.

    Attributes
    ----------
    now : float
        Current simulated time (ms).
    stats : dict
        Event counters: 'scheduled', 'executed', 'cancelled'.

    Methods
    -------
    scheduleAfter(delay, callback, *args)
        Schedule callback delay ms from now.
    scheduleAt(time, callback, *args)
        Schedule callback at an absolute time.
    cancel(handle)
        Cancel a pending event.
    run(until)
        Run events in time order up to and including until.
    step()
        Run the next pending event.
    """

    ## Constructor ===========================================================#
    def __init__(self)->None:
        self.now = 0.0
        self._queue: List[Tuple[float, int, EventHandle]] = []
        self.__seq = 0
        self.stats = {
            'scheduled': 0,
            'executed': 0,
            'cancelled': 0,
        }

    ## Special Methods =======================================================#
    def __repr__(self)->str:
        return (f"{self.__class__.__name__}("
                f"now={self.now}, "
                f"pending={len(self)}, "
                f"stats={self.stats})")

    def __len__(self)->int:
        """Number of queued events that have not been cancelled."""
        return sum(1 for _, _, h in self._queue if not h.cancelled)

    ## Methods ===============================================================#
    def scheduleAt(self,
                   time:float,
                   callback:Callable[..., Any],
                   *args:Any,
                   )->EventHandle:
        """
        Schedule callback(*args) at absolute simulated time.

        Raises
        ------
        ValueError
            If time is earlier than now.
        """

        if (time < self.now):
            raise ValueError(f'cannot schedule at {time} before now '
                             f'({self.now})')
        handle = EventHandle(time, self._nextSeq(), callback, args, False)
        heapq.heappush(self._queue, (handle.time, handle.seq, handle))
        self.stats['scheduled'] += 1
        return handle

    #--------------------------------------------------------------------------
    def scheduleAfter(self,
                      delay:float,
                      callback:Callable[..., Any],
                      *args:Any,
                      )->EventHandle:
        """Schedule callback(*args) delay ms after now."""

        if (delay < 0):
            raise ValueError(f'negative delay {delay}')
        return self.scheduleAt(self.now + delay, callback, *args)

    #--------------------------------------------------------------------------
    def cancel(self, handle:Optional[EventHandle])->None:
        """Cancel handle if it is still pending. None is ignored."""

        if (handle is not None and not handle.cancelled):
            handle.cancel()
            self.stats['cancelled'] += 1

    #--------------------------------------------------------------------------
    def step(self)->bool:
        """
        Run the next non-cancelled event.

        Returns
        -------
        ran : bool
            False if the queue held no pending event.
        """

        while self._queue:
            time, _, handle = heapq.heappop(self._queue)
            if (handle.cancelled):
                continue
            self.now = time
            logger.simTime = f'{time:.2f}'
            handle.cancelled = True
            handle.callback(*handle.args)
            self.stats['executed'] += 1
            return True
        return False

    #--------------------------------------------------------------------------
    def run(self, until:Optional[float] = None)->None:
        """
        Run events in time order.

        Parameters
        ----------
        until : float, optional
            Stop after the last event at or before this time and advance now
            to it. If None, run until the queue is empty.
        """

        while self._queue:
            # cancelled heads must not hide a live event past until
            if (self._queue[0][2].cancelled):
                heapq.heappop(self._queue)
                continue
            if (until is not None and self._queue[0][0] > until):
                break
            self.step()
        if (until is not None and until > self.now):
            self.now = until
            logger.simTime = f'{until:.2f}'
        log.debug('Scheduler stopped at %.2f ms with %d pending', self.now,
                  len(self))

    ## Helper Methods ========================================================#
    def _nextSeq(self)->int:
        """Return next event sequence number for heap tie-breaking."""
        self.__seq += 1
        return self.__seq
