"""
Feedback message codec and periodic feedback scheduler.

Receivers report their aggregated group reception quality back to the group
source in a fixed 24-byte feedback header. The source feeds each decoded
sample to its rate adaptation engine.

Classes
-------
FeedbackScheduler
    Periodic feedback timer with a one-shot start on the first group frame.

Functions
---------
getFeedbackStruct()
    Return construct library structure of the feedback header.
writeFeedback(sample, payload)
    Serialize sample into a header and prepend it to payload.
readFeedback(data, address)
    Parse header from data and return the sample and remaining payload.

Notes
-----
**Feedback Header (24 bytes, little-endian):**

.. code-block:: none

    {
        'signalStrength': float,    # 8 bytes - Conservative SNR estimate (dB)
        'snr': float,               # 8 bytes - Mean SNR (dB)
        'lossCount': int,           # 4 bytes - Frames lost in window
        'totalCount': int,          # 4 bytes - Frames expected in window
    }

No type flag or version field: a frame is known to be feedback from its frame
type, not from its payload.

**Feedback Cadence:**

The first group data frame received from a previously unseen peer captures
that peer as the feedback destination and sends one feedback message at once.
From then on a message is sent every FEEDBACK_PERIOD ms until the scheduler is
stopped. Group frames from other peers never change the destination.
"""

from __future__ import annotations
from typing import Callable, Optional, Tuple, TYPE_CHECKING
from functools import lru_cache
import construct as cst
if (TYPE_CHECKING):
    from grouprate.events import EventHandle, EventScheduler
from grouprate import logger
from grouprate.errors import MalformedFeedback
from grouprate.station import FeedbackSample

#-----------------------------------------------------------------------------#

# Global Variables
log = logger.addLog('feedback')

# Header size in bytes
FEEDBACK_SIZE = 24

# Counter field limit
UINT32_MAX = 0xFFFFFFFF

###############################################################################

@lru_cache(maxsize=1)
def getFeedbackStruct()->cst.Struct:
    """
    Return binary structure of the feedback header.

    Returns
    -------
    cst.Struct
        Construct library Struct. Use .build(dict) to serialize and
        .parse(bytes) to deserialize.

    Examples
    --------
    >>> fbStruct = getFeedbackStruct()
    >>> raw = fbStruct.build({'signalStrength': 18.5, 'snr': 21.0,
    ...                       'lossCount': 2, 'totalCount': 40})
    >>> len(raw)
    24
    """

    # FEEDBACK :: 24 bytes
    return cst.Struct(
        "signalStrength"    / cst.Float64l,
        "snr"               / cst.Float64l,
        "lossCount"         / cst.Int32ul,
        "totalCount"        / cst.Int32ul,
    )

###############################################################################

def writeFeedback(sample:FeedbackSample, payload:bytes = b'')->bytes:
    """
    Serialize sample as a feedback header prepended to payload.

    Parameters
    ----------
    sample : FeedbackSample
        Quality aggregate to send. The address field is not serialized.
    payload : bytes, default=b''
        Bytes following the header.

    Returns
    -------
    message : bytes
        24-byte header followed by payload.

    Raises
    ------
    ValueError
        If a counter is outside the unsigned 32-bit range.
    """

    for name in ('lossCount', 'totalCount'):
        value = getattr(sample, name)
        if (not 0 <= value <= UINT32_MAX):
            raise ValueError(f'{name}={value} outside uint32 range')

    header = getFeedbackStruct().build({
        'signalStrength': sample.signalStrength,
        'snr': sample.snr,
        'lossCount': sample.lossCount,
        'totalCount': sample.totalCount,
    })
    return header + bytes(payload)

###############################################################################

def readFeedback(data:bytes,
                 address:Optional[int] = None,
                 )->Tuple[FeedbackSample, bytes]:
    """
    Parse a feedback header from the front of data.

    Parameters
    ----------
    data : bytes
        Received frame payload.
    address : int, optional
        Sender address to store in the returned sample.

    Returns
    -------
    sample : FeedbackSample
        Decoded quality aggregate.
    rest : bytes
        Payload bytes following the header.

    Raises
    ------
    MalformedFeedback
        If data holds fewer than 24 bytes.
    """

    if (len(data) < FEEDBACK_SIZE):
        raise MalformedFeedback(
            f'feedback needs {FEEDBACK_SIZE} bytes, got {len(data)}')
    try:
        fields = getFeedbackStruct().parse(bytes(data[:FEEDBACK_SIZE]))
    except cst.ConstructError as e:
        raise MalformedFeedback(str(e)) from e

    sample = FeedbackSample(
        address=address,
        signalStrength=fields.signalStrength,
        snr=fields.snr,
        lossCount=fields.lossCount,
        totalCount=fields.totalCount,
    )
    return sample, bytes(data[FEEDBACK_SIZE:])

###############################################################################

class FeedbackScheduler:
    """
    Periodic feedback sender for one receiving node.

    Parameters
    ----------
    scheduler : EventScheduler
        Event loop providing scheduleAfter() and cancel().
    sampleSource : callable
        Returns the node's current receive-side FeedbackSample.
    send : callable
        send(payload, dest) queues an encoded feedback payload.
    **kwargs : dict
        Attribute overrides.

    Attributes
    ----------
    FEEDBACK_PERIOD : float, default=100.0
        Time between feedback messages (ms).
    destination : int or None
        Feedback destination, fixed by the first group frame.
    stats : dict
        'sent' and 'triggers' counters.

    Methods
    -------
    onGroupFrame(source)
        One-shot trigger on a received group data frame.
    startPeriodicFeedback(destination)
        Send now and every FEEDBACK_PERIOD after.
    stopPeriodicFeedback()
        Cancel the pending feedback timer.
    """

    ## Constructor ===========================================================#
    def __init__(self,
                 scheduler:EventScheduler,
                 sampleSource:Callable[[], FeedbackSample],
                 send:Callable[[bytes, int], None],
                 **kwargs,
                 )->None:

        self.FEEDBACK_PERIOD = 100.0
        self.__dict__.update(kwargs)
        if (self.FEEDBACK_PERIOD <= 0):
            raise ValueError(
                f'FEEDBACK_PERIOD must be positive: {self.FEEDBACK_PERIOD}')

        self.scheduler = scheduler
        self.sampleSource = sampleSource
        self.send = send
        self.destination: Optional[int] = None
        self._handle: Optional[EventHandle] = None
        self.stats = {
            'sent': 0,
            'triggers': 0,
        }

    ## Properties ============================================================#
    @property
    def isRunning(self)->bool:
        """True while a feedback timer is pending."""
        return (self._handle is not None) and (self._handle.pending)

    ## Special Methods =======================================================#
    def __repr__(self)->str:
        return (f"{self.__class__.__name__}("
                f"FEEDBACK_PERIOD={self.FEEDBACK_PERIOD}, "
                f"destination={self.destination}, "
                f"isRunning={self.isRunning}, "
                f"stats={self.stats})")

    ## Methods ===============================================================#
    def onGroupFrame(self, source:int)->bool:
        """
        Start feedback toward source if no destination is set yet.

        Returns
        -------
        started : bool
            True if this frame started the feedback loop.
        """

        if (self.destination is not None):
            return False
        self.stats['triggers'] += 1
        log.info('First group frame from %03d: feedback destination set',
                 source)
        self.startPeriodicFeedback(source)
        return True

    #--------------------------------------------------------------------------
    def startPeriodicFeedback(self, destination:Optional[int] = None)->None:
        """
        Send one feedback message now and re-arm every FEEDBACK_PERIOD.

        Parameters
        ----------
        destination : int, optional
            Sets the destination if none is set yet. Ignored otherwise.

        Raises
        ------
        ValueError
            If no destination is known.

        Notes
        -----
        Calling while the loop is running has no effect.
        """

        if (self.destination is None):
            self.destination = destination
        if (self.destination is None):
            raise ValueError('feedback destination is not set')
        if (self.isRunning):
            log.debug('Feedback to %03d already running', self.destination)
            return
        self._sendFeedback()

    #--------------------------------------------------------------------------
    def stopPeriodicFeedback(self)->None:
        """Cancel the pending feedback timer. The destination is kept."""

        if (self.isRunning):
            self.scheduler.cancel(self._handle)
            log.info('Feedback to %03d stopped', self.destination)
        self._handle = None

    ## Helper Methods ========================================================#
    def _sendFeedback(self)->None:
        """Encode and send the current sample, then re-arm the timer."""

        sample = self.sampleSource()
        payload = writeFeedback(sample)
        log.debug('FB -> %03d: SS %.2f dB, SNR %.2f dB, loss %d/%d',
                  self.destination, sample.signalStrength, sample.snr,
                  sample.lossCount, sample.totalCount)
        self.send(payload, self.destination)
        self.stats['sent'] += 1
        self._handle = self.scheduler.scheduleAfter(self.FEEDBACK_PERIOD,
                                                    self._sendFeedback)
