"""
Plots of group rate adaptation runs.

Functions
---------
plotGroupRate(history, fileName, figNo)
    Plot group data rate, coding index and minimum SNR versus time.
cm2inch(value)
    Convert centimeters to inches for figure sizing.

Notes
-----
Default plot parameters (figure size, DPI, legend size) are module-level
globals and can be changed before calling the plot functions.
"""

from typing import Dict, Optional
from numpy.typing import NDArray
import matplotlib.pyplot as plt
import numpy as np
from grouprate import logger

#-----------------------------------------------------------------------------#

# Type Aliases
NPFltArr = NDArray[np.float64]

# Global Variables
log = logger.addLog('plot')

# Plot Parameters
legendSize = 10         # legend size
figSize = [25, 13]      # figure size in cm
dpiValue = 150          # figure dpi value

###############################################################################

def cm2inch(value:float)->float:
    """Convert centimeters to inches."""
    return value / 2.54

###############################################################################

def plotGroupRate(history:Dict[str, NPFltArr],
                  fileName:Optional[str] = None,
                  figNo:int = 1,
                  )->plt.Figure:
    """
    Plot the group rate decisions of a simulation run.

    Parameters
    ----------
    history : dict of ndarray
        Equal-length arrays keyed 'time' (ms), 'dataRate' (Mb/s), 'mcs' and
        'minSnr' (dB).
    fileName : str, optional
        If given, the figure is saved there and closed.
    figNo : int, default=1
        Figure number.

    Returns
    -------
    fig : matplotlib.figure.Figure
        The figure, closed if it was saved.

    Raises
    ------
    KeyError
        If a history array is missing.

    Notes
    -----
    Creates 2 subplots:

    1. Group data rate (Mb/s) and coding index vs time
    2. Group minimum SNR (dB) vs time, gaps where no feedback existed
    """

    t = np.asarray(history['time']) / 1e3
    rate = np.asarray(history['dataRate'])
    mcs = np.asarray(history['mcs'])
    minSnr = np.asarray(history['minSnr'])

    fig = plt.figure(figNo,
                     figsize=(cm2inch(figSize[0]), cm2inch(figSize[1])),
                     dpi=dpiValue)
    fig.suptitle('Group rate adaptation')

    ax1 = fig.add_subplot(2, 1, 1)
    ax1.step(t, rate, where='post')
    ax1.set_ylabel('Data rate (Mb/s)')
    ax1.grid()
    ax1b = ax1.twinx()
    ax1b.step(t, mcs, where='post', color='tab:orange', alpha=0.6)
    ax1b.set_ylabel('MCS')
    ax1.legend(['Group data rate'], fontsize=legendSize, loc='upper left')
    ax1b.legend(['Group MCS'], fontsize=legendSize, loc='upper right')

    ax2 = fig.add_subplot(2, 1, 2, sharex=ax1)
    ax2.plot(t, minSnr)
    ax2.set_xlabel('Time (s)')
    ax2.set_ylabel('SNR (dB)')
    ax2.legend(['Group minimum SNR'], fontsize=legendSize)
    ax2.grid()

    if (fileName is not None):
        fig.savefig(fileName)
        plt.close(fig)
        log.info('Group rate plot saved to %s', fileName)

    return fig
