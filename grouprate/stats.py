"""
Running statistics of group rate decisions.

Classes
-------
RunningStats
    Monotonic sums and counts with average accessors and a text report.
"""

from __future__ import annotations
import numpy as np

###############################################################################

class RunningStats:
    """
    Accumulator for group rate adaptation quality.

    Attributes
    ----------
    sumMinSnr : float
        Sum of the group minimum SNR (dB) over all computations that had
        feedback samples.
    sumGroupDataRate : float
        Sum of selected group data rates (Mb/s).
    sumGroupMcs : int
        Sum of selected group coding indexes.
    count : int
        Number of completed selections.

    Methods
    -------
    addMinSnr(minSnr)
        Accumulate one group minimum.
    addSelection(dataRate, mcs)
        Accumulate one selected mode and increment count.
    averageMinSnr(), averageDataRate(), averageMcs()
        Sum divided by count, NaN when count is zero.
    getStatsReport()
        Formatted summary.

    Notes
    -----
    Minimum SNR is accumulated before the linear SNR check of a group
    computation, count only after a mode is selected. averageMinSnr()
    therefore divides every accumulated minimum by the number of selections.
    """

    ## Constructor ===========================================================#
    def __init__(self)->None:
        self.sumMinSnr = 0.0
        self.sumGroupDataRate = 0.0
        self.sumGroupMcs = 0
        self.count = 0

    ## Special Methods =======================================================#
    def __repr__(self)->str:
        return (f"{self.__class__.__name__}("
                f"sumMinSnr={self.sumMinSnr}, "
                f"sumGroupDataRate={self.sumGroupDataRate}, "
                f"sumGroupMcs={self.sumGroupMcs}, "
                f"count={self.count})")

    ## Methods ===============================================================#
    def addMinSnr(self, minSnr:float)->None:
        self.sumMinSnr += minSnr

    def addSelection(self, dataRate:float, mcs:int)->None:
        """Accumulate a selection; dataRate in bits per second."""
        self.sumGroupDataRate += dataRate / 1e6
        self.sumGroupMcs += mcs
        self.count += 1

    #--------------------------------------------------------------------------
    def averageMinSnr(self)->float:
        """Average group minimum SNR in dB, NaN before the first selection."""
        if (self.count == 0):
            return np.nan
        return self.sumMinSnr / self.count

    def averageDataRate(self)->float:
        """Average selected group data rate in Mb/s, NaN before any."""
        if (self.count == 0):
            return np.nan
        return self.sumGroupDataRate / self.count

    def averageMcs(self)->float:
        """Average selected coding index, NaN before any selection."""
        if (self.count == 0):
            return np.nan
        return self.sumGroupMcs / self.count

    #--------------------------------------------------------------------------
    def getStatsReport(self)->str:
        """Return formatted averages of the group rate decisions."""

        cw = 22
        cw2 = 10
        report = [
            f"\nGroup Rate Adaptation Summary",
            f"{' Selections:':{cw}} {self.count:>{cw2}}",
            f"{' Avg Min SNR:':{cw}} {self.averageMinSnr():>{cw2}.2f} dB",
            f"{' Avg Data Rate:':{cw}} "
            f"{self.averageDataRate():>{cw2}.2f} Mb/s",
            f"{' Avg MCS:':{cw}} {self.averageMcs():>{cw2}.2f}",
        ]
        line = '-' * max([len(line) for line in report])
        report.insert(1, line)
        report.append(line)
        return "\n".join(report)
