"""
Per-station and group channel quality records.

Classes
-------
StationRecord
    SNR measured directly during this node's own exchanges with a peer.
FeedbackSample
    Channel quality aggregate reported by a peer over the feedback channel.
GroupState
    Result of the last group rate computation.

Notes
-----
StationRecord.lastSnr and FeedbackSample.snr are different quantities: the
first is measured locally from control and acknowledgment frames and drives
per-station selection, the second is reported by the peer and only enters the
group computation. Neither is ever written from the other.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING
import numpy as np
if (TYPE_CHECKING):
    from grouprate.modes import Mode

###############################################################################

@dataclass
class StationRecord:
    """
    Directly measured link quality to one remote station.

    Attributes
    ----------
    address : int
        Peer address.
    lastSnr : float
        Linear SNR observed in the most recent successful exchange. NaN until
        the first exchange completes.
    """

    __slots__ = ('address', 'lastSnr')

    address: int
    lastSnr: float

###############################################################################

@dataclass
class FeedbackSample:
    """
    Aggregated receive quality reported by a peer.

    Attributes
    ----------
    address : int or None
        Reporting peer. None for a sample decoded from the wire before the
        receiver attaches the sender address.
    signalStrength : float
        Conservative SNR estimate in dB used for the group minimum.
    snr : float
        Mean SNR in dB.
    lossCount : int
        Frames lost by the peer during the reporting window.
    totalCount : int
        Frames expected by the peer during the reporting window.
    """

    __slots__ = ('address', 'signalStrength', 'snr', 'lossCount',
                 'totalCount')

    address: Optional[int]
    signalStrength: float
    snr: float
    lossCount: int
    totalCount: int

    ## Properties ============================================================#
    @property
    def lossRate(self)->float:
        """Fraction of expected frames lost. NaN if none were expected."""
        if (self.totalCount == 0):
            return np.nan
        return self.lossCount / self.totalCount

###############################################################################

@dataclass
class GroupState:
    """
    Last group rate decision.

    Attributes
    ----------
    minSnr : float
        Minimum reported value across feedback samples (dB). NaN before the
        first computation with samples.
    groupMode : Mode or None
        Selected group mode.
    groupMcs : int or None
        Coding index of groupMode.
    """

    __slots__ = ('minSnr', 'groupMode', 'groupMcs')

    minSnr: float
    groupMode: Optional[Mode]
    groupMcs: Optional[int]
