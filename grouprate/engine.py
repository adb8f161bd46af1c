"""
Closed-loop group rate adaptation engine.

The engine keeps one FeedbackSample per reporting peer and recomputes the
group transmission mode in full whenever a sample arrives. Independently it
selects per-transmission modes for unicast data and RTS frames from the SNR it
measures in its own exchanges with each peer.

Classes
-------
GroupRateEngine
    Feedback ingestion, group mode selection, per-station selection and
    running statistics.

Notes
-----
**Group Mode Selection (groupRateAdaptation):**

1. No samples: catalog mode 0.
2. minSnr = minimum of the samples' finite groupMetric values (dB), added to
   the running statistics.
3. linearSnr = 10^(minSnr/10). At or below 1 the previous group mode is kept.
4. rateType selects the algorithm:

   - 0, delivery-probability threshold: every catalog mode whose loss
     probability for a 1000-byte test payload is below PER_THRESHOLD
     qualifies. perPolicy 'rate' keeps the last qualifying mode in catalog
     order, 'loss' keeps the first mode with the smallest loss.
   - 1, expected-throughput maximization: delivery probability of a
     1086-byte frame times data rate, strictly largest wins.

   No qualifying mode falls back to catalog mode 0.

**Per-Transmission Selection:**

- selectDataMode(): expected throughput at the station's lastSnr over the
  station's supported modes, strictly largest wins, else the default mode.
- selectRtsMode(): the catalog mode with the highest SNR threshold strictly
  below lastSnr, else the default mode.

Failures are never punished: the failure report handlers do nothing.
"""

from __future__ import annotations
from typing import Dict, List, Optional
import numpy as np
from grouprate import logger
from grouprate.errormodel import YansOfdmModel
from grouprate.modes import Mode, ModeCatalog
from grouprate.station import FeedbackSample, GroupState, StationRecord
from grouprate.stats import RunningStats

#-----------------------------------------------------------------------------#

# Global Variables
log = logger.setupModule('rate', file=False)

###############################################################################

class GroupRateEngine:
    """
    Rate adaptation engine for one transmitting node.

    Parameters
    ----------
    catalog : ModeCatalog, optional
        Modes to choose from. Defaults to the eight OFDM modes.
    model : delivery model, optional
        Provides deliveryProbability(mode, snrLinear, frameBits) and
        calculateSnr(mode, ber). Defaults to YansOfdmModel().
    **kwargs : dict
        Attribute overrides.

    Attributes
    ----------
    **Thresholds:**

    BER_THRESHOLD : float, default=1e-5
        Bit error rate defining each mode's SNR threshold.
    PER_THRESHOLD : float, default=0.001
        Loss probability ceiling of rateType 0.

    **Test Frames:**

    TEST_PAYLOAD : int, default=1000
        Payload bytes of the rateType 0 test frame.
    MAC_OVERHEAD : int, default=64
        MAC header bytes added to TEST_PAYLOAD.
    SERVICE_BITS : int, default=22
        PLCP service and tail bits.
    TEST_FRAME : int, default=1086
        Frame bytes used for expected throughput.

    **Strategy Selectors:**

    rateType : int, default=0
        0 delivery-probability threshold, 1 expected-throughput maximization.
    perPolicy : str, default='rate'
        Candidate preference of rateType 0: 'rate' or 'loss'.
    groupMetric : str, default='signalStrength'
        Sample field whose minimum drives the group: 'signalStrength' or
        'snr'.
    defaultMode : int, default=0
        Catalog index returned when per-station selection finds nothing.

    **State:**

    stations : dict
        StationRecord per peer address, created on first contact.
    samples : list of FeedbackSample
        Latest sample per reporting peer, in first-report order.
    group : GroupState
        Last group decision.
    stats : RunningStats
        Accumulated group decisions.

    Methods
    -------
    updateInfo(address, sample)
        Store a peer's feedback and recompute the group mode.
    groupRateAdaptation()
        Recompute and return the group mode.
    selectGroupMode()
        Alias of groupRateAdaptation().
    getGroupMode()
        Return the cached group mode without recomputing.
    selectDataMode(address), selectRtsMode(address)
        Per-transmission mode selection.
    reportRtsOk(...), reportDataOk(...)
        Record the SNR of a successful exchange.
    reportRxOk(...), reportRtsFailed(...), reportDataFailed(...),
    reportFinalRtsFailed(...), reportFinalDataFailed(...)
        No-op reports.
    getStatsReport()
        Formatted configuration and statistics summary.
    """

    ## Constructor ===========================================================#
    def __init__(self,
                 catalog:Optional[ModeCatalog] = None,
                 model:Optional[object] = None,
                 **kwargs,
                 )->None:

        # Thresholds
        self.BER_THRESHOLD = 1e-5
        self.PER_THRESHOLD = 0.001

        # Test frames
        self.TEST_PAYLOAD = 1000
        self.MAC_OVERHEAD = 64
        self.SERVICE_BITS = 22
        self.TEST_FRAME = 1086

        # Strategy selectors
        self.rateType = 0
        self.perPolicy = 'rate'
        self.groupMetric = 'signalStrength'
        self.defaultMode = 0

        self.__dict__.update(kwargs)

        if (not 0 < self.BER_THRESHOLD < 1):
            raise ValueError(
                f'BER_THRESHOLD must be in (0, 1): {self.BER_THRESHOLD}')
        if (self.PER_THRESHOLD <= 0):
            raise ValueError(
                f'PER_THRESHOLD must be positive: {self.PER_THRESHOLD}')
        if (self.groupMetric not in ('signalStrength', 'snr')):
            raise ValueError(f'unknown groupMetric {self.groupMetric!r}')

        self.catalog = catalog if catalog is not None else ModeCatalog()
        self.model = model if model is not None else YansOfdmModel()
        if (len(self.catalog) == 0):
            raise ValueError('mode catalog is empty')

        self.stations: Dict[int, StationRecord] = {}
        self.samples: List[FeedbackSample] = []
        self.group = GroupState(np.nan, None, None)
        self.stats = RunningStats()

        ## Rate algorithm
        rateStrategies = {
            0: self._selectByThreshold,
            1: self._selectByThroughput,
        }
        if (self.rateType not in rateStrategies):
            raise ValueError(f'unknown rateType {self.rateType!r}')
        self._selectGroup = rateStrategies[self.rateType]

        ## Candidate preference
        policyStrategies = {
            'rate': self._preferLater,
            'loss': self._preferLowerLoss,
        }
        if (self.perPolicy not in policyStrategies):
            raise ValueError(f'unknown perPolicy {self.perPolicy!r}')
        self._prefer = policyStrategies[self.perPolicy]

        if (self.rateType == 0):
            log.info('Group Rate ENABLED: THRESHOLD (%s) at PER %.0E...',
                     self.perPolicy.upper(), self.PER_THRESHOLD)
        else:
            log.info('Group Rate ENABLED: THROUGHPUT...')

    ## Special Methods =======================================================#
    def __repr__(self)->str:
        """Detailed description of the engine."""
        return (
            f"{self.__class__.__name__}("
            f"BER_THRESHOLD={self.BER_THRESHOLD}, "
            f"PER_THRESHOLD={self.PER_THRESHOLD}, "
            f"TEST_PAYLOAD={self.TEST_PAYLOAD}, "
            f"MAC_OVERHEAD={self.MAC_OVERHEAD}, "
            f"SERVICE_BITS={self.SERVICE_BITS}, "
            f"TEST_FRAME={self.TEST_FRAME}, "
            f"rateType={self.rateType}, "
            f"perPolicy={self.perPolicy}, "
            f"groupMetric={self.groupMetric}, "
            f"defaultMode={self.defaultMode}, "
            f"modes={len(self.catalog)}, "
            f"stations={len(self.stations)}, "
            f"samples={len(self.samples)})"
        )

    #-------------------------------------------------------------------------#
    def __str__(self)->str:
        """User friendly description of the engine."""
        cw = 20
        if (self.rateType == 0):
            algo = f"Threshold ({self.perPolicy})"
        else:
            algo = "Throughput"
        mode = self.group.groupMode
        out = [
            f"Rate Adaptation: group",
            f"{'Algorithm:':{cw}} {algo}",
            f"{'BER Threshold:':{cw}} {self.BER_THRESHOLD:.0E}",
            f"{'PER Threshold:':{cw}} {self.PER_THRESHOLD:.0E}",
            f"{'Group Metric:':{cw}} {self.groupMetric}",
            f"{'Modes:':{cw}} {len(self.catalog)}",
            f"{'Stations:':{cw}} {len(self.stations)}",
            f"{'Samples:':{cw}} {len(self.samples)}",
            f"{'Group Mode:':{cw}} {mode.modeId if mode else '-'}",
        ]
        line = '-' * max([len(line) for line in out])
        out.insert(1, line)
        out.append(line)
        return "\n".join(out)

    ## Feedback Ingestion ====================================================#
    def updateInfo(self, address:int, sample:FeedbackSample)->Mode:
        """
        Store the latest feedback of a peer and recompute the group mode.

        Parameters
        ----------
        address : int
            Reporting peer.
        sample : FeedbackSample
            Decoded feedback. Stored as a copy tagged with address.

        Returns
        -------
        mode : Mode
            Recomputed group mode.
        """

        entry = FeedbackSample(address, sample.signalStrength, sample.snr,
                               sample.lossCount, sample.totalCount)
        for i, s in enumerate(self.samples):
            if (s.address == address):
                self.samples[i] = entry
                break
        else:
            self.samples.append(entry)
            log.info('Feedback from new peer %03d (%d reporting)', address,
                     len(self.samples))

        log.debug('FB <- %03d: SS %.2f dB, SNR %.2f dB, loss %d/%d', address,
                  entry.signalStrength, entry.snr, entry.lossCount,
                  entry.totalCount)
        return self.groupRateAdaptation()

    ## Group Selection =======================================================#
    def groupRateAdaptation(self)->Mode:
        """
        Recompute the group mode from all current samples.

        Returns
        -------
        mode : Mode
            Selected group mode, also cached in self.group.

        Notes
        -----
        A minimum SNR at or below 0 dB keeps the previous group mode, or mode
        0 when there is none yet. Samples with a non-finite value are left
        out of the minimum; if no finite value remains the mode is kept and
        nothing is accumulated.
        """

        self.catalog.ensurePopulated(self.model, self.BER_THRESHOLD)

        if (not self.samples):
            mode = self.catalog.getMode(0)
            self._setGroupMode(mode)
            log.debug('No feedback samples: %s', mode.modeId)
            return mode

        values = []
        for s in self.samples:
            value = getattr(s, self.groupMetric)
            if (np.isfinite(value)):
                values.append(value)
            else:
                log.warning('Peer %03d reported %s %s: left out of group '
                            'minimum', s.address, self.groupMetric, value)
        if (not values):
            log.warning('No finite %s reported: group mode kept',
                        self.groupMetric)
            return self._keepGroupMode()

        minSnr = float(min(values))
        self.group.minSnr = minSnr
        self.stats.addMinSnr(minSnr)
        linearSnr = 10 ** (minSnr / 10)
        if (linearSnr <= 1.0):
            log.debug('Group minimum %.2f dB: group mode kept', minSnr)
            return self._keepGroupMode()

        mode = self._selectGroup(linearSnr)
        self.stats.addSelection(mode.dataRate, mode.mcs)
        if (mode != self.group.groupMode):
            log.info('Group mode %s (mcs %d) at min %.2f dB', mode.modeId,
                     mode.mcs, minSnr)
        self._setGroupMode(mode)
        return mode

    #--------------------------------------------------------------------------
    def selectGroupMode(self)->Mode:
        """Recompute and return the group mode."""
        return self.groupRateAdaptation()

    #--------------------------------------------------------------------------
    def getGroupMode(self)->Mode:
        """Return the cached group mode, computing it if none exists yet."""

        if (self.group.groupMode is None):
            return self.groupRateAdaptation()
        return self.group.groupMode

    ## Per-Transmission Selection ============================================#
    def lookupStation(self, address:int)->StationRecord:
        """Return the record of address, creating it on first contact."""

        station = self.stations.get(address)
        if (station is None):
            station = StationRecord(address, np.nan)
            self.stations[address] = station
        return station

    #--------------------------------------------------------------------------
    def selectDataMode(self, address:int)->Mode:
        """
        Return the unicast data mode for address.

        Maximizes deliveryProbability(mode, lastSnr, TEST_FRAME bits) times
        data rate over the station's supported modes. Returns the default
        mode if no mode has positive expected throughput.
        """

        station = self.lookupStation(address)
        frameBits = self.TEST_FRAME * 8
        best = None
        bestThroughput = 0.0
        for mode in self.catalog.stationModes(address):
            throughput = (self.model.deliveryProbability(
                mode, station.lastSnr, frameBits) * mode.dataRate)
            if (throughput > bestThroughput):
                best = mode
                bestThroughput = throughput
        if (best is None):
            return self._getDefaultMode()
        return best

    #--------------------------------------------------------------------------
    def selectRtsMode(self, address:int)->Mode:
        """
        Return the RTS mode for address.

        The catalog mode with the highest SNR threshold strictly below the
        station's lastSnr, otherwise the default mode.
        """

        self.catalog.ensurePopulated(self.model, self.BER_THRESHOLD)
        station = self.lookupStation(address)
        chosen = self._getDefaultMode()
        maxThreshold = 0.0
        for mode in self.catalog.supportedModes():
            threshold = mode.snrThreshold
            if (threshold > maxThreshold and threshold < station.lastSnr):
                chosen = mode
                maxThreshold = threshold
        return chosen

    ## Reports ===============================================================#
    def reportRtsOk(self,
                    address:int,
                    ctsSnr:float,
                    ctsMode:Mode,
                    rtsSnr:float,
                    )->None:
        """Record the linear SNR the peer measured on our RTS."""
        self.lookupStation(address).lastSnr = rtsSnr

    def reportDataOk(self,
                     address:int,
                     ackSnr:float,
                     ackMode:Mode,
                     dataSnr:float,
                     )->None:
        """Record the linear SNR the peer measured on our data frame."""
        self.lookupStation(address).lastSnr = dataSnr

    def reportRxOk(self, address:int, rxSnr:float, txMode:Mode)->None:
        pass

    def reportRtsFailed(self, address:int)->None:
        pass

    def reportDataFailed(self, address:int)->None:
        pass

    def reportFinalRtsFailed(self, address:int)->None:
        pass

    def reportFinalDataFailed(self, address:int)->None:
        pass

    ## Statistics ============================================================#
    def getAverageMinSnr(self)->float:
        return self.stats.averageMinSnr()

    def getAverageDataRate(self)->float:
        return self.stats.averageDataRate()

    def getAverageMcs(self)->float:
        return self.stats.averageMcs()

    #--------------------------------------------------------------------------
    def getStatsReport(self)->str:
        """Return the engine summary followed by the statistics report."""
        return str(self) + "\n" + self.stats.getStatsReport()

    ## Helper Methods ========================================================#
    def _setGroupMode(self, mode:Mode)->None:
        self.group.groupMode = mode
        self.group.groupMcs = mode.mcs

    def _keepGroupMode(self)->Mode:
        if (self.group.groupMode is None):
            self._setGroupMode(self.catalog.getMode(0))
        return self.group.groupMode

    def _getDefaultMode(self)->Mode:
        return self.catalog.getMode(self.defaultMode)

    #--------------------------------------------------------------------------
    def _thresholdFrameBits(self, mode:Mode)->int:
        """
        Return coded bits of the rateType 0 test frame, in whole symbols.

        (TEST_PAYLOAD + MAC_OVERHEAD) * 8 + SERVICE_BITS data bits are coded
        at the mode's code rate and rounded up to the next OFDM symbol.
        """

        dataBits = (self.TEST_PAYLOAD + self.MAC_OVERHEAD) * 8
        dataBits += self.SERVICE_BITS
        nSymbols = dataBits / mode.codingRate / mode.codedBitsPerSymbol
        return (int(nSymbols) + 1) * mode.codedBitsPerSymbol

    #--------------------------------------------------------------------------
    def _selectByThreshold(self, linearSnr:float)->Mode:
        """Delivery-probability threshold selection (rateType 0)."""

        best = None
        bestLoss = 1.0
        for mode in self.catalog.supportedModes():
            nbits = self._thresholdFrameBits(mode)
            pdr = self.model.deliveryProbability(mode, linearSnr, nbits)
            loss = 1 - pdr
            if (loss < self.PER_THRESHOLD and self._prefer(loss, bestLoss)):
                best = mode
                bestLoss = loss

        if (best is None or bestLoss == 1):
            return self.catalog.getMode(0)
        return best

    #--------------------------------------------------------------------------
    def _selectByThroughput(self, linearSnr:float)->Mode:
        """Expected-throughput maximization (rateType 1)."""

        frameBits = self.TEST_FRAME * 8
        best = None
        bestThroughput = 0.0
        for mode in self.catalog.supportedModes():
            pdr = self.model.deliveryProbability(mode, linearSnr, frameBits)
            throughput = pdr * mode.dataRate
            if (throughput > bestThroughput):
                best = mode
                bestThroughput = throughput

        if (best is None):
            return self.catalog.getMode(0)
        return best

    #--------------------------------------------------------------------------
    def _preferLater(self, loss:float, bestLoss:float)->bool:
        """Every qualifying candidate replaces the previous one."""
        return True

    def _preferLowerLoss(self, loss:float, bestLoss:float)->bool:
        """A qualifying candidate replaces only a strictly lossier one."""
        return loss < bestLoss
