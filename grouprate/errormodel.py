"""
Packet delivery model for convolutionally coded OFDM modes.

Analytic chunk success rate model for 20 MHz OFDM: the uncoded bit error rate
of the constellation at a given SNR, bounded through the free distance of the
convolutional code, raised to the number of bits in the frame.

Classes
-------
YansOfdmModel
    Delivery model providing deliveryProbability() and calculateSnr().

Functions
---------
bpskBer(snr, phyRate)
    Uncoded BPSK bit error rate.
qamBer(snr, m, phyRate)
    Uncoded square M-QAM bit error rate.
pairwiseErrorProbability(ber, d)
    Probability that a weight-d error path is chosen by the decoder.

Notes
-----
**Bit Error Rate:**

With Eb/No = snr * SIGNAL_SPREAD / phyRate:

- BPSK:  0.5 * erfc(sqrt(Eb/No))
- M-QAM: z = sqrt(1.5 * log2(m) * Eb/No / (m - 1)),
  z1 = (1 - 1/sqrt(m)) * erfc(z),
  ber = (1 - (1 - z1)^2) / log2(m)

**Coded Chunk Success Rate:**

pmu = adFree * Pd(ber, dFree) [+ adFreePlusOne * Pd(ber, dFree + 1) for QAM],
capped at 1; success = (1 - pmu)^nbits.

**Threshold Search:**

calculateSnr() bisects the linear SNR between 1e-25 and 1e25 until the single
bit error rate matches the requested value.

References
----------
[1] Lacage, M. and Henderson, T. R. "Yet Another Network Simulator."
    Workshop on ns-2, 2006.
[2] Proakis, J. G. Digital Communications, 4th ed. McGraw-Hill, 2001.
"""

from __future__ import annotations
from typing import Dict, Tuple, TYPE_CHECKING
from functools import lru_cache
import math
import numpy as np
if (TYPE_CHECKING):
    from grouprate.modes import Mode
from grouprate import logger

#-----------------------------------------------------------------------------#

# Global Variables
log = logger.addLog('errmod')

# Bandwidth over which the signal is spread (Hz)
SIGNAL_SPREAD = 20e6

# Convolutional code parameters per (constellation, code rate):
# (dFree, adFree, adFreePlusOne). BPSK uses only the first term.
FEC_PARAMS: Dict[Tuple[int, str], Tuple[int, int, int]] = {
    (2, '1/2'):  (10, 11, 0),
    (2, '3/4'):  (5, 8, 0),
    (4, '1/2'):  (10, 11, 0),
    (4, '3/4'):  (5, 8, 31),
    (16, '1/2'): (10, 11, 0),
    (16, '3/4'): (5, 8, 31),
    (64, '2/3'): (6, 1, 16),
    (64, '3/4'): (5, 8, 31),
}

###############################################################################

def bpskBer(snr:float, phyRate:float)->float:
    """Return uncoded BPSK bit error rate at linear snr."""

    EbNo = snr * SIGNAL_SPREAD / phyRate
    return 0.5 * math.erfc(math.sqrt(EbNo))

###############################################################################

def qamBer(snr:float, m:int, phyRate:float)->float:
    """Return uncoded square m-QAM bit error rate at linear snr."""

    EbNo = snr * SIGNAL_SPREAD / phyRate
    z = math.sqrt((1.5 * math.log2(m) * EbNo) / (m - 1.0))
    z1 = (1.0 - 1.0 / math.sqrt(m)) * math.erfc(z)
    z2 = 1 - (1 - z1) ** 2
    return z2 / math.log2(m)

###############################################################################

@lru_cache(maxsize=None)
def _binomial(n:int, k:int)->int:
    return math.comb(n, k)

def pairwiseErrorProbability(ber:float, d:int)->float:
    """
    Return the probability of decoding a weight-d error path.

    Parameters
    ----------
    ber : float
        Channel bit error rate.
    d : int
        Hamming weight of the error path.

    Returns
    -------
    pd : float
        Sum over i > d/2 of C(d, i) ber^i (1 - ber)^(d - i). For even d the
        tie term i = d/2 counts with weight one half.
    """

    pd = 0.0
    if (d % 2 == 1):
        start = (d + 1) // 2
    else:
        half = d // 2
        pd = 0.5 * _binomial(d, half) * ber**half * (1.0 - ber)**half
        start = half + 1
    for i in range(start, d + 1):
        pd += _binomial(d, i) * ber**i * (1.0 - ber)**(d - i)
    return pd

###############################################################################

class YansOfdmModel:
    """
    Analytic delivery model for 20 MHz OFDM modes.

    Parameters
    ----------
    **kwargs : dict
        Attribute overrides.

    Attributes
    ----------
    SNR_LOW : float, default=1e-25
        Lower bound of the threshold bisection.
    SNR_HIGH : float, default=1e25
        Upper bound of the threshold bisection.
    PRECISION : float, default=1e-12
        Bisection stops once the bracket is narrower than this.

    Methods
    -------
    chunkSuccessRate(mode, snr, nbits)
        Probability that nbits bits of mode are all decoded at snr.
    deliveryProbability(mode, snrLinear, frameBits)
        Packet delivery ratio for a frame of frameBits bits.
    calculateSnr(mode, ber)
        Linear SNR at which the single bit error rate of mode equals ber.
    """

    ## Constructor ===========================================================#
    def __init__(self, **kwargs)->None:

        self.SNR_LOW = 1e-25
        self.SNR_HIGH = 1e25
        self.PRECISION = 1e-12
        self.__dict__.update(kwargs)

    ## Special Methods =======================================================#
    def __repr__(self)->str:
        return (f"{self.__class__.__name__}("
                f"SNR_LOW={self.SNR_LOW}, "
                f"SNR_HIGH={self.SNR_HIGH}, "
                f"PRECISION={self.PRECISION})")

    ## Methods ===============================================================#
    def chunkSuccessRate(self, mode:Mode, snr:float, nbits:int)->float:
        """
        Return the probability that nbits coded bits of mode are received.

        Parameters
        ----------
        mode : Mode
            Transmission mode.
        snr : float
            Linear signal to noise ratio.
        nbits : int
            Number of bits in the chunk.

        Returns
        -------
        csr : float
            Chunk success rate in [0, 1].

        Raises
        ------
        ValueError
            If the mode's constellation and code rate have no code
            parameters.
        """

        key = (mode.constellation, mode.codeRate)
        if (key not in FEC_PARAMS):
            raise ValueError(f'no code parameters for {mode.modulation} '
                             f'{mode.codeRate}')
        dFree, adFree, adFreePlusOne = FEC_PARAMS[key]

        if (mode.constellation == 2):
            ber = bpskBer(snr, mode.phyRate)
        else:
            ber = qamBer(snr, mode.constellation, mode.phyRate)
        if (ber == 0.0):
            return 1.0

        pmu = adFree * pairwiseErrorProbability(ber, dFree)
        if (mode.constellation != 2):
            pmu += adFreePlusOne * pairwiseErrorProbability(ber, dFree + 1)
        pmu = min(pmu, 1.0)
        return (1.0 - pmu) ** nbits

    #--------------------------------------------------------------------------
    def deliveryProbability(self,
                            mode:Mode,
                            snrLinear:float,
                            frameBits:int,
                            )->float:
        """Return the delivery probability of a frameBits frame at snrLinear."""

        if (snrLinear <= 0):
            return 0.0
        return self.chunkSuccessRate(mode, snrLinear, frameBits)

    #--------------------------------------------------------------------------
    def calculateSnr(self, mode:Mode, ber:float)->float:
        """
        Return the linear SNR at which mode reaches bit error rate ber.

        Parameters
        ----------
        mode : Mode
            Transmission mode.
        ber : float
            Target single bit error rate.

        Returns
        -------
        snr : float
            Lower edge of the final bisection bracket.
        """

        low = self.SNR_LOW
        high = self.SNR_HIGH
        while ((high - low) > self.PRECISION):
            middle = low + (high - low) / 2
            if ((1 - self.chunkSuccessRate(mode, middle, 1)) > ber):
                low = middle
            else:
                high = middle
            # bracket collapsed to adjacent floats
            if ((high - low) <= np.spacing(low)):
                break
        log.debug('%s: %.3g linear (%.2f dB) at BER %.0E', mode.modeId, low,
                  10 * np.log10(low), ber)
        return low
