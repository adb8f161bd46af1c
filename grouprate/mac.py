"""
Ad-hoc MAC glue between the rate engine, feedback loop and medium.

Each AdhocNode owns a GroupRateEngine for its own transmissions, an
RxQualityMonitor for the group frames it receives and a FeedbackScheduler that
reports that reception quality back to the group source.

Classes
-------
AdhocNode
    Ad-hoc station: enqueue, transmit, receive dispatch and exchange
    outcome handling.

Notes
-----
**Transmit Path:**

- Group frames go out at the engine's current group mode.
- Unicast frames of at least RTS_THRESHOLD bytes are preceded by an RTS at
  selectRtsMode(); data goes out at selectDataMode(). Failed attempts are
  retried up to MAX_RETRY times.

**Receive Path:**

- Group data: SNR and sequence number go to the monitor; the first group
  frame starts the feedback loop toward its sender.
- Feedback: decoded and handed to the engine's updateInfo(). Truncated
  feedback is logged and dropped.
"""

from __future__ import annotations
from typing import Dict, List, Optional, Sequence, TYPE_CHECKING
import numpy as np
if (TYPE_CHECKING):
    from grouprate.network import RateNet
from grouprate import logger
from grouprate.engine import GroupRateEngine
from grouprate.errors import InvalidTid, MalformedFeedback
from grouprate.feedback import FeedbackScheduler, readFeedback
from grouprate.modes import ModeCatalog
from grouprate.network import BCAST_ADDR, Frame
from grouprate.rxmonitor import RxQualityMonitor

#-----------------------------------------------------------------------------#

# Global Variables
log = logger.setupModule('mac', file=False)

# Traffic identifiers
MAX_TID = 8

###############################################################################

class AdhocNode:
    """
    Ad-hoc station attached to a RateNet.

    Parameters
    ----------
    address : int
        Node address.
    network : RateNet
        Medium to attach to. The node registers itself.
    position : sequence of float, default=(0, 0)
        Position (m).
    engine : GroupRateEngine, optional
        Rate engine. Defaults to an engine sharing the network's delivery
        model.
    monitor : RxQualityMonitor, optional
        Receive-side accumulator. Defaults to RxQualityMonitor().
    **kwargs : dict
        Attribute overrides. FEEDBACK_PERIOD is passed to the feedback
        scheduler.

    Attributes
    ----------
    RTS_THRESHOLD : int, default=500
        Unicast payload size (bytes) from which an RTS precedes data.
    MAX_RETRY : int, default=4
        Retransmissions before a final failure.
    FEEDBACK_PERIOD : float, default=100.0
        Feedback interval (ms).
    engine : GroupRateEngine
    monitor : RxQualityMonitor
    feedback : FeedbackScheduler
    received : list of Frame
        Data frames delivered to this node.
    stats : dict
        Node counters.

    Methods
    -------
    enqueue(payload, dest, tid)
        Send payload to dest or to the group.
    receive(frame, snr)
        Medium callback for a delivered frame.
    onTxComplete(frame, ok, snr)
        Medium callback for a unicast outcome.
    stop()
        Stop the feedback loop.
    """

    ## Constructor ===========================================================#
    def __init__(self,
                 address:int,
                 network:RateNet,
                 position:Sequence[float] = (0.0, 0.0),
                 engine:Optional[GroupRateEngine] = None,
                 monitor:Optional[RxQualityMonitor] = None,
                 **kwargs,
                 )->None:

        self.RTS_THRESHOLD = 500
        self.MAX_RETRY = 4
        self.FEEDBACK_PERIOD = 100.0
        self.__dict__.update(kwargs)

        self.address = address
        self.network = network
        self.position = np.asarray(position, dtype=np.float64)
        if (engine is None):
            engine = GroupRateEngine(ModeCatalog(), network.model)
        self.engine = engine
        self.monitor = monitor if monitor is not None else RxQualityMonitor()
        self.feedback = FeedbackScheduler(
            network.scheduler,
            lambda: self.monitor.getRxInfo(self.address),
            self._sendFeedback,
            FEEDBACK_PERIOD=self.FEEDBACK_PERIOD,
        )

        self.received: List[Frame] = []
        self._seq = 0
        self._groupSeq = 0
        self._pending: Dict[int, Frame] = {}
        self.stats = {
            'txGroup': 0,
            'txUnicast': 0,
            'rxGroup': 0,
            'rxUnicast': 0,
            'rxFeedback': 0,
            'malformed': 0,
            'finalFailed': 0,
        }

        network.register(self)

    ## Special Methods =======================================================#
    def __repr__(self)->str:
        return (f"{self.__class__.__name__}("
                f"address={self.address}, "
                f"position={self.position.tolist()}, "
                f"RTS_THRESHOLD={self.RTS_THRESHOLD}, "
                f"MAX_RETRY={self.MAX_RETRY}, "
                f"FEEDBACK_PERIOD={self.FEEDBACK_PERIOD}, "
                f"stats={self.stats})")

    ## Methods ===============================================================#
    def enqueue(self, payload:bytes, dest:int, tid:int = 0)->Frame:
        """
        Send payload to dest, or to the group when dest is BCAST_ADDR.

        Parameters
        ----------
        payload : bytes
            Frame body.
        dest : int
            Destination address.
        tid : int, default=0
            Traffic identifier. Values of 7 and above are mapped to 0.

        Returns
        -------
        frame : Frame
            The first frame put on the air (RTS or data).

        Raises
        ------
        InvalidTid
            If tid is negative.
        """

        if (tid >= MAX_TID - 1):
            tid = 0
        if (not 0 <= tid < MAX_TID):
            raise InvalidTid(f'tid {tid} outside [0, {MAX_TID})')

        if (dest == BCAST_ADDR):
            frame = Frame('data', self.address, dest, self._groupSeq, tid,
                          self.engine.getGroupMode(), bytes(payload), 0)
            self._groupSeq += 1
            self.stats['txGroup'] += 1
            self.network.transmit(frame)
            return frame

        if (self.engine.catalog.isBrandNew(dest)):
            self.engine.catalog.addAllStationModes(dest)
            log.debug('%03d: new peer %03d supports all modes',
                      self.address, dest)

        frame = Frame('data', self.address, dest, self._nextSeq(), tid,
                      self.engine.selectDataMode(dest), bytes(payload), 0)
        self.stats['txUnicast'] += 1
        return self._startExchange(frame)

    #--------------------------------------------------------------------------
    def receive(self, frame:Frame, snr:float)->None:
        """
        Dispatch a frame delivered by the medium.

        Parameters
        ----------
        frame : Frame
            Delivered frame.
        snr : float
            Linear reception SNR.
        """

        self.engine.reportRxOk(frame.src, snr, frame.mode)

        if (frame.kind == 'feedback'):
            self.stats['rxFeedback'] += 1
            try:
                sample, _ = readFeedback(frame.payload, frame.src)
            except MalformedFeedback as e:
                self.stats['malformed'] += 1
                log.warning('%03d: feedback from %03d dropped: %s',
                            self.address, frame.src, e)
                return
            self.engine.updateInfo(frame.src, sample)
            return

        if (frame.kind != 'data'):
            return

        self.received.append(frame)
        if (frame.isGroup):
            self.stats['rxGroup'] += 1
            self.monitor.recordFrame(frame.src, frame.seq,
                                     10 * np.log10(snr))
            self.feedback.onGroupFrame(frame.src)
        else:
            self.stats['rxUnicast'] += 1

    #--------------------------------------------------------------------------
    def onTxComplete(self, frame:Frame, ok:bool, snr:float)->None:
        """
        Handle the outcome of a unicast RTS or data attempt.

        Parameters
        ----------
        frame : Frame
            Attempted frame.
        ok : bool
            True if the receiver got the frame.
        snr : float
            Linear SNR the receiver measured.

        Notes
        -----
        The link is symmetric, so the CTS or ACK SNR equals the measured SNR.
        """

        dest = frame.dest
        if (frame.kind == 'rts'):
            if (ok):
                self.engine.reportRtsOk(dest, snr, frame.mode, snr)
                data = self._pending.pop(frame.seq)
                self.network.transmit(data)
                return
            self.engine.reportRtsFailed(dest)
            if (frame.retry >= self.MAX_RETRY):
                self.engine.reportFinalRtsFailed(dest)
                self._pending.pop(frame.seq, None)
                self._finalFailure(frame)
                return
            frame.retry += 1
            frame.mode = self.engine.selectRtsMode(dest)
            self.network.transmit(frame)
            return

        if (ok):
            self.engine.reportDataOk(dest, snr, frame.mode, snr)
            return
        self.engine.reportDataFailed(dest)
        if (frame.retry >= self.MAX_RETRY):
            self.engine.reportFinalDataFailed(dest)
            self._finalFailure(frame)
            return
        frame.retry += 1
        frame.mode = self.engine.selectDataMode(dest)
        self._startExchange(frame)

    #--------------------------------------------------------------------------
    def stop(self)->None:
        """Stop sending feedback."""
        self.feedback.stopPeriodicFeedback()

    ## Helper Methods ========================================================#
    def _nextSeq(self)->int:
        self._seq += 1
        return self._seq

    #--------------------------------------------------------------------------
    def _startExchange(self, frame:Frame)->Frame:
        """Send frame, preceded by an RTS if it is large enough."""

        if (len(frame.payload) < self.RTS_THRESHOLD):
            self.network.transmit(frame)
            return frame

        rts = Frame('rts', self.address, frame.dest, frame.seq, frame.tid,
                    self.engine.selectRtsMode(frame.dest), b'', 0)
        self._pending[frame.seq] = frame
        self.network.transmit(rts)
        return rts

    #--------------------------------------------------------------------------
    def _sendFeedback(self, payload:bytes, dest:int)->None:
        """Feedback scheduler transport: unicast feedback frame to dest."""

        if (self.engine.catalog.isBrandNew(dest)):
            self.engine.catalog.addAllStationModes(dest)
        frame = Frame('feedback', self.address, dest, self._nextSeq(), 0,
                      self.engine.selectDataMode(dest), payload, 0)
        self.network.transmit(frame)

    #--------------------------------------------------------------------------
    def _finalFailure(self, frame:Frame)->None:
        self.stats['finalFailed'] += 1
        log.info('%03d: %s #%d to %03d failed after %d retries',
                 self.address, frame.kind, frame.seq, frame.dest,
                 frame.retry)
