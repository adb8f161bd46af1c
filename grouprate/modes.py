"""
Transmission modes and the mode catalog used by the rate adaptation engine.

A mode is one modulation and coding scheme of the link: its data rate, code
rate, constellation size, raw PHY rate and coding index. The catalog keeps the
ordered set of modes the engine may choose from, the SNR threshold of each mode
and the subset of modes each remote station supports.

Classes
-------
Mode
    Immutable mode descriptor.
ModeCatalog
    Ordered mode registry with lazily populated SNR thresholds and per-station
    supported subsets.

Functions
---------
ofdmModes()
    The eight 20 MHz OFDM modes of IEEE 802.11a (6 to 54 Mb/s).

Notes
-----
Mode identity ignores snrThreshold: a mode read back from a populated catalog
compares equal (and hashes equal) to the descriptor it was registered with.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from fractions import Fraction
from typing import Dict, Iterator, List, Optional, Protocol
import numpy as np
from grouprate import logger
from grouprate.errors import ModeNotFound

#-----------------------------------------------------------------------------#

# Global Variables
log = logger.addLog('modes')

# Duration of one OFDM symbol at 20 MHz (s)
OFDM_SYMBOL_TIME = 4e-6

###############################################################################

class SnrCalculator(Protocol):
    """Delivery model capability used to populate catalog thresholds."""

    def calculateSnr(self, mode:Mode, ber:float)->float: ...

###############################################################################

@dataclass(frozen=True)
class Mode:
    """
    Transmission mode descriptor.

    Attributes
    ----------
    modeId : str
        Unique mode name, e.g. 'OfdmRate6Mbps'.
    dataRate : int
        Payload data rate in bits per second.
    codeRate : str
        Convolutional code rate as a fraction string: '1/2', '2/3' or '3/4'.
    phyRate : int
        Coded bit rate in bits per second.
    constellation : int
        Constellation size: 2 (BPSK), 4 (QPSK), 16 or 64 (QAM).
    mcs : int
        Coding index reported with group rate decisions.
    snrThreshold : float
        Linear SNR required to reach the catalog bit error rate. NaN until the
        catalog is populated. Not part of mode identity.
    """

    modeId: str
    dataRate: int
    codeRate: str
    phyRate: int
    constellation: int
    mcs: int
    snrThreshold: float = field(default=np.nan, compare=False)

    ## Properties ============================================================#
    @property
    def codingRate(self)->float:
        """Numeric value of codeRate."""
        return float(Fraction(self.codeRate))

    @property
    def codedBitsPerSymbol(self)->int:
        """Coded bits carried by one OFDM symbol."""
        return int(round(self.phyRate * OFDM_SYMBOL_TIME))

    @property
    def modulation(self)->str:
        """Modulation family name."""
        if (self.constellation == 2):
            return 'BPSK'
        if (self.constellation == 4):
            return 'QPSK'
        return f'{self.constellation}QAM'

    ## Special Methods =======================================================#
    def __str__(self)->str:
        return (f"{self.modeId} ({self.modulation} {self.codeRate}, "
                f"mcs {self.mcs})")

###############################################################################

def ofdmModes()->List[Mode]:
    """
    Return the eight IEEE 802.11a 20 MHz OFDM modes in rate order.

    Returns
    -------
    modes : list of Mode
        6, 9, 12, 18, 24, 36, 48 and 54 Mb/s with coding indexes 0 to 7.
    """

    table = [
        # rate Mb/s, code rate, phy Mb/s, constellation
        (6,  '1/2', 12, 2),
        (9,  '3/4', 12, 2),
        (12, '1/2', 24, 4),
        (18, '3/4', 24, 4),
        (24, '1/2', 48, 16),
        (36, '3/4', 48, 16),
        (48, '2/3', 72, 64),
        (54, '3/4', 72, 64),
    ]
    return [
        Mode(modeId=f'OfdmRate{rate}Mbps',
             dataRate=rate * 1_000_000,
             codeRate=codeRate,
             phyRate=phy * 1_000_000,
             constellation=m,
             mcs=mcs)
        for mcs, (rate, codeRate, phy, m) in enumerate(table)
    ]

###############################################################################

class ModeCatalog:
    """
    Ordered registry of transmission modes.

    Parameters
    ----------
    modes : list of Mode, optional
        Modes to register, in order. Defaults to ofdmModes().

    Attributes
    ----------
    isPopulated : bool
        True once SNR thresholds have been computed.

    Methods
    -------
    register(mode)
        Append a mode to the catalog.
    supportedModes()
        Return modes in registration order.
    getMode(index)
        Return mode by registration index.
    lookup(modeId)
        Return mode by name.
    snrThreshold(mode)
        Return linear SNR threshold of a registered mode.
    ensurePopulated(model, berThreshold)
        Compute thresholds once from a delivery model.
    setThreshold(mode, threshold)
        Set one threshold directly.
    stationModes(address), addStationMode(address, mode),
    addAllStationModes(address), isBrandNew(address)
        Per-station supported mode bookkeeping.

    Notes
    -----
    Thresholds are stored on the catalog copies of each mode through
    dataclasses.replace(), so supportedModes() returns modes carrying their
    thresholds while still comparing equal to the registered descriptors.
    """

    ## Constructor ===========================================================#
    def __init__(self, modes:Optional[List[Mode]] = None)->None:

        self._modes: List[Mode] = []
        self._index: Dict[Mode, int] = {}
        self._stations: Dict[int, List[int]] = {}
        self.isPopulated = False

        if (modes is None):
            modes = ofdmModes()
        for mode in modes:
            self.register(mode)

    ## Special Methods =======================================================#
    def __len__(self)->int:
        return len(self._modes)

    def __iter__(self)->Iterator[Mode]:
        return iter(self._modes)

    def __contains__(self, mode:Mode)->bool:
        return mode in self._index

    def __repr__(self)->str:
        return (f"{self.__class__.__name__}("
                f"modes={[m.modeId for m in self._modes]}, "
                f"isPopulated={self.isPopulated})")

    def __str__(self)->str:
        cw = 18
        out = [f"{'Mode':{cw}}{'Rate (Mb/s)':>12}{'MCS':>5}{'SNR (dB)':>10}"]
        for mode in self._modes:
            if (np.isnan(mode.snrThreshold)):
                thr = f"{'-':>10}"
            else:
                thr = f"{10 * np.log10(mode.snrThreshold):>10.2f}"
            out.append(f"{mode.modeId:{cw}}{mode.dataRate / 1e6:>12g}"
                       f"{mode.mcs:>5}{thr}")
        line = '-' * max([len(line) for line in out])
        out.insert(1, line)
        return "\n".join(out)

    ## Methods ===============================================================#
    def register(self, mode:Mode)->None:
        """Append mode to the catalog. Registering a mode twice is ignored."""

        if (mode in self._index):
            log.debug('%s already registered', mode.modeId)
            return
        self._index[mode] = len(self._modes)
        self._modes.append(mode)

    #--------------------------------------------------------------------------
    def supportedModes(self)->List[Mode]:
        """Return catalog modes in registration order."""
        return list(self._modes)

    #--------------------------------------------------------------------------
    def getMode(self, index:int)->Mode:
        """
        Return mode at registration index.

        Raises
        ------
        ModeNotFound
            If index is outside the catalog.
        """

        if (not 0 <= index < len(self._modes)):
            raise ModeNotFound(f'no mode at index {index}')
        return self._modes[index]

    #--------------------------------------------------------------------------
    def lookup(self, modeId:str)->Mode:
        """Return mode with the given name, raising ModeNotFound if absent."""

        for mode in self._modes:
            if (mode.modeId == modeId):
                return mode
        raise ModeNotFound(f'no mode named {modeId!r}')

    #--------------------------------------------------------------------------
    def indexOf(self, mode:Mode)->int:
        """Return registration index of mode, raising ModeNotFound if absent."""

        try:
            return self._index[mode]
        except KeyError:
            raise ModeNotFound(f'{mode.modeId} is not registered') from None

    #--------------------------------------------------------------------------
    def snrThreshold(self, mode:Mode)->float:
        """
        Return the linear SNR threshold of a registered mode.

        Parameters
        ----------
        mode : Mode
            Registered mode. Identity ignores the threshold the caller's copy
            may carry.

        Returns
        -------
        threshold : float
            Linear SNR. NaN if the catalog is not populated yet.

        Raises
        ------
        ModeNotFound
            If mode was never registered.
        """

        return self._modes[self.indexOf(mode)].snrThreshold

    #--------------------------------------------------------------------------
    def setThreshold(self, mode:Mode, threshold:float)->None:
        """Store the linear SNR threshold of a registered mode."""

        i = self.indexOf(mode)
        self._modes[i] = replace(self._modes[i], snrThreshold=threshold)

    #--------------------------------------------------------------------------
    def ensurePopulated(self,
                        model:SnrCalculator,
                        berThreshold:float,
                        )->None:
        """
        Compute every mode's SNR threshold once.

        Parameters
        ----------
        model : SnrCalculator
            Delivery model providing calculateSnr(mode, ber).
        berThreshold : float
            Single bit error rate defining the threshold.

        Notes
        -----
        Idempotent: later calls return immediately, so thresholds set by
        setThreshold() before the first call are replaced and thresholds set
        after it are kept.
        """

        if (self.isPopulated):
            return
        for mode in list(self._modes):
            thr = model.calculateSnr(mode, berThreshold)
            self.setThreshold(mode, thr)
            log.debug('%s threshold %.2f dB', mode.modeId,
                      10 * np.log10(thr))
        self.isPopulated = True
        log.info('Mode catalog populated: %d modes at BER %.0E',
                 len(self._modes), berThreshold)

    ## Station Supported Modes ===============================================#
    def isBrandNew(self, address:int)->bool:
        """True if no supported modes were ever recorded for address."""
        return address not in self._stations

    #--------------------------------------------------------------------------
    def stationModes(self, address:int)->List[Mode]:
        """Return modes supported by address, in the order they were added."""
        return [self._modes[i] for i in self._stations.get(address, [])]

    #--------------------------------------------------------------------------
    def addStationMode(self, address:int, mode:Mode)->None:
        """Record that address supports a registered mode."""

        i = self.indexOf(mode)
        indexes = self._stations.setdefault(address, [])
        if (i not in indexes):
            indexes.append(i)

    #--------------------------------------------------------------------------
    def addAllStationModes(self, address:int)->None:
        """Record that address supports every catalog mode."""

        for mode in self._modes:
            self.addStationMode(address, mode)
