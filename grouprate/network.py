"""
Shared wireless medium for rate adaptation simulations.

RateNet carries frames between AdhocNode instances: it computes each
receiver's SNR from distance, draws delivery from the delivery model at the
frame's mode and delivers surviving frames after their airtime through the
event scheduler. Unicast outcomes are reported back to the sender so its rate
engine can record the exchange.

Classes
-------
Frame
    Frame metadata and payload carried on the medium.
RateNet
    Medium with path loss, optional shadowing, delivery draws and traffic
    statistics.

Notes
-----
**Link SNR:**

snr_dB = SNR_NOMINAL - 10 * PATHLOSS_EXP * log10(d / NOM_DIST) [+ shadowing]

**Airtime (20 MHz OFDM):**

PREAMBLE + ceil((SERVICE + 8 * bytes + TAIL) / bitsPerSymbol) * SYMBOL

Contention, queueing and collisions are not modeled: a frame is on the air
for its airtime and every receiver decides independently.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional, TYPE_CHECKING
from numpy.typing import NDArray
import math
import numpy as np
if (TYPE_CHECKING):
    from grouprate.events import EventScheduler
    from grouprate.mac import AdhocNode
    from grouprate.modes import Mode
from grouprate import logger
from grouprate.errormodel import YansOfdmModel

#-----------------------------------------------------------------------------#

# Type Aliases
NPFltArr = NDArray[np.float64]

# Global Variables
log = logger.setupModule('ratenet', file=False)

# Group address
BCAST_ADDR = 255

# MAC header bytes per frame kind
HEADER_SIZE = {
    'data': 28,
    'feedback': 28,
    'rts': 20,
}

###############################################################################

@dataclass
class Frame:
    """
    Frame on the medium.

    Attributes
    ----------
    kind : str
        'data', 'feedback' or 'rts'.
    src : int
        Sender address.
    dest : int
        Receiver address or BCAST_ADDR.
    seq : int
        Sender sequence number (group frames use their own counter).
    tid : int
        Traffic identifier.
    mode : Mode
        Transmission mode.
    payload : bytes
        Frame body.
    retry : int
        Attempt number of this frame, 0 for the first.
    """

    __slots__ = ('kind', 'src', 'dest', 'seq', 'tid', 'mode', 'payload',
                 'retry')

    kind: str
    src: int
    dest: int
    seq: int
    tid: int
    mode: Mode
    payload: bytes
    retry: int

    ## Properties ============================================================#
    @property
    def isGroup(self)->bool:
        return self.dest == BCAST_ADDR

    @property
    def size(self)->int:
        """Frame size in bytes, header included."""
        return HEADER_SIZE[self.kind] + len(self.payload)

###############################################################################

class RateNet:
    """
    Wireless medium connecting rate-adaptive nodes.

    Parameters
    ----------
    scheduler : EventScheduler
        Event loop used for delivery timing.
    model : delivery model, optional
        Provides deliveryProbability(mode, snrLinear, frameBits). Defaults to
        YansOfdmModel().
    **kwargs : dict
        Attribute overrides.

    Attributes
    ----------
    **Link Parameters:**

    SNR_NOMINAL : float, default=30.0
        SNR (dB) at NOM_DIST.
    NOM_DIST : float, default=10.0
        Reference distance (m).
    PATHLOSS_EXP : float, default=3.0
        Log-distance path loss exponent.
    SHADOW_STD : float, default=2.0
        Standard deviation of log-normal shadowing (dB).

    **Timing Parameters (ms):**

    PREAMBLE : float, default=0.020
        PLCP preamble and header duration.
    SYMBOL : float, default=0.004
        OFDM symbol duration.
    SIFS : float, default=0.016
        Gap before a response frame.

    **Strategy Selectors:**

    shadowType : str, default='off'
        'gaussian' draws SHADOW_STD dB shadowing per reception.
    seed : int, optional
        Random generator seed.

    **State:**

    nodes : dict
        AdhocNode per address.
    stats : dict
        Traffic counters.

    Methods
    -------
    register(node)
        Attach a node to the medium.
    transmit(frame)
        Put a frame on the air.
    linkSnr(src, dest)
        Linear SNR of the link between two nodes now.
    airtime(mode, nbytes)
        Frame duration in ms.
    calcStats()
        Compute derived statistics.
    getStatsReport()
        Formatted traffic summary.
    """

    ## Constructor ===========================================================#
    def __init__(self,
                 scheduler:EventScheduler,
                 model:Optional[object] = None,
                 **kwargs,
                 )->None:

        ## Link parameters
        self.SNR_NOMINAL = 30.0
        self.NOM_DIST = 10.0
        self.PATHLOSS_EXP = 3.0
        self.SHADOW_STD = 2.0

        ## Timing parameters
        self.PREAMBLE = 0.020
        self.SYMBOL = 0.004
        self.SIFS = 0.016

        ## Strategy selectors
        self.shadowType = 'off'
        self.seed = None

        self.__dict__.update(kwargs)

        self.scheduler = scheduler
        self.model = model if model is not None else YansOfdmModel()
        self.nodes: Dict[int, AdhocNode] = {}
        self.rng = np.random.default_rng(self.seed)
        self.stats = {
            'packetSent': 0,
            'groupSent': 0,
            'unicastSent': 0,
            'packetDelivered': 0,
            'packetDropPDR': 0,
            'packetFailedDel': 0,
            'deliveryRate': 0.0,
        }

        ## Shadowing
        shadowStrategies = {
            'gaussian': self._shadowGaussian,
            'off': self._shadowDisabled,
        }
        if (self.shadowType not in shadowStrategies):
            raise ValueError(f'unknown shadowType {self.shadowType!r}')
        self._applyShadow = shadowStrategies[self.shadowType]
        if (self.shadowType == 'off'):
            log.info('Shadowing DISABLED...')
        else:
            log.info('Shadowing ENABLED: %s (%.1f dB)...',
                     self.shadowType.upper(), self.SHADOW_STD)

    ## Special Methods =======================================================#
    def __repr__(self)->str:
        """Detailed description of the network."""
        return (
            f"{self.__class__.__name__}("
            f"SNR_NOMINAL={self.SNR_NOMINAL}, "
            f"NOM_DIST={self.NOM_DIST}, "
            f"PATHLOSS_EXP={self.PATHLOSS_EXP}, "
            f"SHADOW_STD={self.SHADOW_STD}, "
            f"PREAMBLE={self.PREAMBLE}, "
            f"SYMBOL={self.SYMBOL}, "
            f"SIFS={self.SIFS}, "
            f"shadowType={self.shadowType}, "
            f"nodes={len(self.nodes)}, "
            f"stats={self.stats}, "
            f"seed={self.seed})"
        )

    #-------------------------------------------------------------------------#
    def __str__(self)->str:
        """User friendly description of the network."""
        cw = 20
        if (self.shadowType == 'off'):
            shadowStatus = 'Disabled'
        else:
            shadowStatus = f"{self.SHADOW_STD:.1f} dB  {self.shadowType}"
        out = [
            f"Network: RateNet",
            f"{'SNR Nominal:':{cw}} {self.SNR_NOMINAL:.1f} dB",
            f"{'Nominal Distance:':{cw}} {self.NOM_DIST:.0f} m",
            f"{'Path Loss Exp:':{cw}} {self.PATHLOSS_EXP:.2f}",
            f"{'Shadowing:':{cw}} {shadowStatus}",
            f"{'Nodes:':{cw}} {len(self.nodes)}",
            f"{'RNG Seed:':{cw}} {self.seed}",
        ]
        line = '-' * max([len(line) for line in out])
        out.insert(1, line)
        out.append(line)
        return "\n".join(out)

    ## Methods ===============================================================#
    def register(self, node:AdhocNode)->None:
        """
        Attach node to the medium.

        Raises
        ------
        ValueError
            If the address is the group address or already in use.
        """

        if (node.address == BCAST_ADDR):
            raise ValueError(f'{BCAST_ADDR} is the group address')
        if (node.address in self.nodes):
            raise ValueError(f'address {node.address} already registered')
        self.nodes[node.address] = node
        log.info('%03d: ON RATENET AT (%.1f, %.1f)...', node.address,
                 *node.position[0:2])

    #--------------------------------------------------------------------------
    def distance(self, src:int, dest:int)->float:
        """Distance between two registered nodes (m)."""
        return float(np.linalg.norm(self.nodes[dest].position -
                                    self.nodes[src].position))

    #--------------------------------------------------------------------------
    def linkSnr(self, src:int, dest:int)->float:
        """
        Return the linear SNR of the src to dest link now.

        Distances below NOM_DIST / 100 are clamped to avoid an infinite SNR.
        """

        d = max(self.distance(src, dest), self.NOM_DIST / 100)
        snrDb = (self.SNR_NOMINAL -
                 10 * self.PATHLOSS_EXP * np.log10(d / self.NOM_DIST))
        snrDb += self._applyShadow()
        return 10 ** (snrDb / 10)

    #--------------------------------------------------------------------------
    def airtime(self, mode:Mode, nbytes:int)->float:
        """Return duration (ms) of an nbytes frame sent at mode."""

        bitsPerSymbol = mode.dataRate * self.SYMBOL * 1e-3
        nSymbols = math.ceil((16 + 8 * nbytes + 6) / bitsPerSymbol)
        return self.PREAMBLE + nSymbols * self.SYMBOL

    #--------------------------------------------------------------------------
    def transmit(self, frame:Frame)->None:
        """
        Put frame on the air toward its receiver(s).

        Parameters
        ----------
        frame : Frame
            Group frames reach every other node, unicast frames only dest.

        Notes
        -----
        Each receiver draws delivery once with probability
        deliveryProbability(mode, snr, 8 * frame.size). Deliveries and
        unicast outcomes are scheduled after the frame's airtime.
        """

        if (frame.isGroup):
            rAddrs = [a for a in self.nodes if a != frame.src]
            self.stats['groupSent'] += 1
        else:
            if (frame.dest not in self.nodes):
                raise ValueError(f'unknown destination {frame.dest}')
            rAddrs = [frame.dest]
            self.stats['unicastSent'] += 1

        duration = self.airtime(frame.mode, frame.size)
        frameBits = 8 * frame.size
        for addr in rAddrs:
            snr = self.linkSnr(frame.src, addr)
            pdr = self.model.deliveryProbability(frame.mode, snr, frameBits)
            ok = bool(self.rng.random() < pdr)
            self.stats['packetSent'] += 1
            log.debug('[%03d:%03d] %s #%d %s (%.3fms) SNR %.2f dB PDR %.4f',
                      frame.src, addr, frame.kind, frame.seq,
                      frame.mode.modeId, duration, 10 * np.log10(snr), pdr)
            if (ok):
                self.scheduler.scheduleAfter(duration, self._deliver,
                                             frame, addr, snr)
            else:
                self.stats['packetDropPDR'] += 1
            if (not frame.isGroup):
                self.scheduler.scheduleAfter(duration + self.SIFS,
                                             self._reportOutcome,
                                             frame, ok, snr)

    #--------------------------------------------------------------------------
    def calcStats(self)->None:
        """Compute the delivery rate from the raw counters."""

        if (self.stats['packetSent'] > 0):
            self.stats['deliveryRate'] = (
                self.stats['packetDelivered'] / self.stats['packetSent'])

    #--------------------------------------------------------------------------
    def getStatsReport(self)->str:
        """
        Return formatted network traffic statistics.

        Returns
        -------
        str
            Multi-line report of configuration, traffic and delivery.
        """

        self.calcStats()
        cw = 22
        cw2 = 10
        if (self.shadowType == 'off'):
            shadowStatus = f"{'Disabled':>{cw2}}"
        else:
            shadowStatus = f"{self.SHADOW_STD:>{cw2}.1f} dB"

        report = [
            f"\nRateNet: Network Performance Summary",
            f"Configuration",
            f"{' Shadowing:':{cw}} {shadowStatus}",
            f"{' Nodes:':{cw}} {len(self.nodes):>{cw2}}",
            f"",
            f"Traffic",
            f"{' Group Frames:':{cw}} {self.stats['groupSent']:>{cw2}}",
            f"{' Unicast Frames:':{cw}} {self.stats['unicastSent']:>{cw2}}",
            f"{' Receptions:':{cw}} {self.stats['packetSent']:>{cw2}}",
            f"{' Delivered:':{cw}} {self.stats['packetDelivered']:>{cw2}}",
            f"{' Dropped (PDR):':{cw}} {self.stats['packetDropPDR']:>{cw2}}",
        ]
        if (self.stats['packetFailedDel'] > 0):
            report.append(
                f"{' Failed Delivery:':{cw}} "
                f"{self.stats['packetFailedDel']:>{cw2}}",
            )
        report.extend([
            f"",
            f"Performance",
            f"{' Delivery Rate:':{cw}} "
            f"{self.stats['deliveryRate']:>{cw2+1}.1%}",
        ])
        line = '-' * max([len(line) for line in report])
        report.insert(1, line)
        report.append(line)
        return "\n".join(report)

    ## Helper Methods ========================================================#
    def _deliver(self, frame:Frame, addr:int, snr:float)->None:
        """Hand a delivered frame to its receiver node."""

        rNode = self.nodes[addr]
        try:
            rNode.receive(frame, snr)
            self.stats['packetDelivered'] += 1
        except Exception as e:
            log.error('[%03d:%03d] FRAME DELIVERY FAILED: %s', frame.src,
                      addr, str(e))
            self.stats['packetFailedDel'] += 1

    #--------------------------------------------------------------------------
    def _reportOutcome(self, frame:Frame, ok:bool, snr:float)->None:
        """Report a unicast outcome to the sender."""
        self.nodes[frame.src].onTxComplete(frame, ok, snr)

    #--------------------------------------------------------------------------
    def _shadowGaussian(self)->float:
        return float(self.rng.normal(0.0, self.SHADOW_STD))

    def _shadowDisabled(self)->float:
        return 0.0
