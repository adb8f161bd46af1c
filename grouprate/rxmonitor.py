"""
Receive-side quality accumulation for feedback reports.

A receiving node records the SNR and sequence number of every group frame it
gets. At each feedback firing the monitor condenses the recent frames into one
FeedbackSample: a conservative signal strength estimate, the mean SNR and the
loss counters of the reporting window.

Classes
-------
FeedbackSettings
    Estimator selection and smoothing parameters.
RxQualityMonitor
    Per-node accumulator producing FeedbackSample reports.

Notes
-----
**Signal Strength Estimators (feedbackType):**

- 0: EWMA of SNR with weight ALPHA on the newest frame.
- 1: Mean SNR minus BETA standard deviations.
- 2: Lower percentile of SNR at 1 - PERCENTILE.

ETA, DELTA and RHO are carried in FeedbackSettings unchanged for estimators
that track drift; none of the built-in estimators reads them.

**Loss Counting:**

Losses are inferred from gaps in the per-source sequence numbers. Counters
cover the window since the previous report and are reset when a report is
taken.
"""

from __future__ import annotations
from collections import deque
from dataclasses import dataclass
from typing import Dict, Optional
import numpy as np
from grouprate import logger
from grouprate.station import FeedbackSample

#-----------------------------------------------------------------------------#

# Global Variables
log = logger.addLog('rxmon')

###############################################################################

@dataclass
class FeedbackSettings:
    """
    Receive-side estimator configuration.

    Attributes
    ----------
    feedbackType : int
        Signal strength estimator: 0 EWMA, 1 mean-minus-deviation,
        2 percentile.
    ALPHA : float
        EWMA weight of the newest SNR.
    BETA : float
        Standard deviation multiplier.
    PERCENTILE : float
        Fraction of frames expected above the estimate.
    ETA, DELTA, RHO : float
        Drift tracking parameters.
    """

    __slots__ = ('feedbackType', 'ALPHA', 'BETA', 'PERCENTILE',
                 'ETA', 'DELTA', 'RHO')

    feedbackType: int
    ALPHA: float
    BETA: float
    PERCENTILE: float
    ETA: float
    DELTA: float
    RHO: float

###############################################################################

class RxQualityMonitor:
    """
    Group reception quality accumulator.

    Parameters
    ----------
    **kwargs : dict
        Attribute overrides.

    Attributes
    ----------
    feedbackType : int, default=0
        Signal strength estimator selector.
    ALPHA : float, default=0.5
    BETA : float, default=0.5
    PERCENTILE : float, default=0.9
    ETA : float, default=0.1
    DELTA : float, default=0.1
    RHO : float, default=0.1
    WINDOW : int, default=100
        Number of recent frame SNRs kept for the mean, deviation and
        percentile.
    lossCount : int
        Frames lost since the last report.
    totalCount : int
        Frames expected since the last report.

    Methods
    -------
    recordFrame(source, seq, snrDb)
        Account one received group frame.
    getRxInfo(address)
        Return the current FeedbackSample and reset the window counters.
    settings()
        Return the active FeedbackSettings.
    """

    ## Constructor ===========================================================#
    def __init__(self, **kwargs)->None:

        self.feedbackType = 0
        self.ALPHA = 0.5
        self.BETA = 0.5
        self.PERCENTILE = 0.9
        self.ETA = 0.1
        self.DELTA = 0.1
        self.RHO = 0.1
        self.WINDOW = 100
        self.__dict__.update(kwargs)

        if (not 0 < self.ALPHA <= 1):
            raise ValueError(f'ALPHA must be in (0, 1]: {self.ALPHA}')
        if (not 0 < self.PERCENTILE < 1):
            raise ValueError(
                f'PERCENTILE must be in (0, 1): {self.PERCENTILE}')

        self._snrs = deque(maxlen=self.WINDOW)
        self._ewma = np.nan
        self._lastSeq: Dict[int, int] = {}
        self.lossCount = 0
        self.totalCount = 0

        estimators = {
            0: self._estEwma,
            1: self._estMeanDeviation,
            2: self._estPercentile,
        }
        if (self.feedbackType not in estimators):
            raise ValueError(f'unknown feedbackType {self.feedbackType!r}')
        self._estimate = estimators[self.feedbackType]

    ## Special Methods =======================================================#
    def __repr__(self)->str:
        return (f"{self.__class__.__name__}("
                f"feedbackType={self.feedbackType}, "
                f"ALPHA={self.ALPHA}, "
                f"BETA={self.BETA}, "
                f"PERCENTILE={self.PERCENTILE}, "
                f"ETA={self.ETA}, "
                f"DELTA={self.DELTA}, "
                f"RHO={self.RHO}, "
                f"WINDOW={self.WINDOW})")

    ## Methods ===============================================================#
    def settings(self)->FeedbackSettings:
        """Return the active estimator configuration."""
        return FeedbackSettings(self.feedbackType, self.ALPHA, self.BETA,
                                self.PERCENTILE, self.ETA, self.DELTA,
                                self.RHO)

    #--------------------------------------------------------------------------
    def recordFrame(self, source:int, seq:int, snrDb:float)->None:
        """
        Account one received group frame.

        Parameters
        ----------
        source : int
            Sender address.
        seq : int
            Sender's group frame sequence number.
        snrDb : float
            Reception SNR in dB.

        Notes
        -----
        A sequence number not above the last one seen from source is a
        duplicate or reordered frame: it updates SNR but not the counters.
        """

        last = self._lastSeq.get(source)
        if (last is None or seq > last):
            if (last is not None):
                gap = seq - last - 1
                if (gap > 0):
                    self.lossCount += gap
                    self.totalCount += gap
                    log.debug('%d frame(s) lost from %03d before seq %d',
                              gap, source, seq)
            self._lastSeq[source] = seq
            self.totalCount += 1

        self._snrs.append(snrDb)
        if (np.isnan(self._ewma)):
            self._ewma = snrDb
        else:
            self._ewma = self.ALPHA * snrDb + (1 - self.ALPHA) * self._ewma

    #--------------------------------------------------------------------------
    def getRxInfo(self, address:Optional[int] = None)->FeedbackSample:
        """
        Return the current quality aggregate and reset the loss counters.

        Parameters
        ----------
        address : int, optional
            Address stored in the sample.

        Returns
        -------
        sample : FeedbackSample
            signalStrength from the selected estimator and snr as the window
            mean, both in dB. Both are NaN before the first frame.
        """

        if (self._snrs):
            snrs = np.asarray(self._snrs, dtype=np.float64)
            meanSnr = float(np.mean(snrs))
            signal = float(self._estimate(snrs))
        else:
            meanSnr = np.nan
            signal = np.nan

        sample = FeedbackSample(address, signal, meanSnr, self.lossCount,
                                self.totalCount)
        self.lossCount = 0
        self.totalCount = 0
        return sample

    ## Helper Methods ========================================================#
    def _estEwma(self, snrs:np.ndarray)->float:
        return self._ewma

    def _estMeanDeviation(self, snrs:np.ndarray)->float:
        return np.mean(snrs) - self.BETA * np.std(snrs)

    def _estPercentile(self, snrs:np.ndarray)->float:
        return np.percentile(snrs, 100 * (1 - self.PERCENTILE))
