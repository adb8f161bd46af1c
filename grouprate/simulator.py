"""
Simulation driver for group rate adaptation scenarios.

Builds one group source and a set of receivers on a RateNet, drives periodic
group traffic and occasional unicast exchanges through the event scheduler,
and records the group rate decisions over time.


Classes
-------
Simulator
    Scenario builder, event loop runner and result collector.


Notes
-----
Simulated time is in milliseconds throughout. Receivers start at seeded random
distances from the source and drift radially away at SPEED m/s, so the group
minimum SNR falls during a run and the group mode steps down.
"""

from typing import Dict, List, Optional
from numpy.typing import NDArray
import datetime
import os
import time
import numpy as np
from grouprate import engine
from grouprate import logger
from grouprate import mac
from grouprate import network
from grouprate import plotting
from grouprate.engine import GroupRateEngine
from grouprate.errormodel import YansOfdmModel
from grouprate.events import EventScheduler
from grouprate.mac import AdhocNode
from grouprate.modes import ModeCatalog
from grouprate.network import BCAST_ADDR, RateNet
from grouprate.rxmonitor import RxQualityMonitor

#-----------------------------------------------------------------------------#

# Type Aliases
NPFltArr = NDArray[np.float64]

###############################################################################

class Simulator:
    """
    Group rate adaptation scenario.

    Parameters
    ----------
    name : str, default='GroupRate'
        Simulation title, used for the output directory.
    runTime : float, default=10000.0
        Simulated duration (ms).
    nReceivers : int, default=5
        Number of group receivers.
    seed : int, optional
        Seed for placement and the network random generator.
    outDir : str, optional
        Output directory. Defaults to ./outputs/<name>_<timestamp>.
    logging : str, default='all'
        Logger configuration: 'all', 'none', 'noout', 'nofile'.
    engineConfig : dict, optional
        GroupRateEngine overrides for every node (rateType, perPolicy, ...).
    netConfig : dict, optional
        RateNet overrides (SNR_NOMINAL, shadowType, ...).
    monitorConfig : dict, optional
        RxQualityMonitor overrides (feedbackType, ALPHA, ...).
    **kwargs : dict
        Attribute overrides.

    Attributes
    ----------
    TRAFFIC_INTERVAL : float, default=10.0
        Group frame interval (ms).
    PAYLOAD_SIZE : int, default=1000
        Group and unicast payload size (bytes).
    UNICAST_INTERVAL : float, default=50.0
        Interval of unicast frames to a random receiver (ms). 0 disables.
    FEEDBACK_PERIOD : float, default=100.0
        Receiver feedback interval (ms).
    MIN_DIST, MAX_DIST : float, default=20.0, 60.0
        Receiver placement range (m).
    SPEED : float, default=2.0
        Receiver radial drift speed (m/s).
    scheduler : EventScheduler
    network : RateNet
    source : AdhocNode
    receivers : list of AdhocNode
    history : dict of ndarray
        'time', 'dataRate', 'mcs' and 'minSnr' after run().
    """

    ## Constructor ===========================================================#
    def __init__(self,
                 name:str = 'GroupRate',
                 runTime:float = 10000.0,
                 nReceivers:int = 5,
                 seed:Optional[int] = None,
                 outDir:Optional[str] = None,
                 logging:str = 'all',
                 engineConfig:Optional[Dict] = None,
                 netConfig:Optional[Dict] = None,
                 monitorConfig:Optional[Dict] = None,
                 **kwargs,
                 )->None:

        ## Time Stamp
        self.initTime = datetime.datetime.now().strftime("%y%m%d-%H%M%S")

        ## Scenario
        self.name = name
        self.runTime = runTime
        self.nReceivers = nReceivers
        self.seed = seed
        self.TRAFFIC_INTERVAL = 10.0
        self.PAYLOAD_SIZE = 1000
        self.UNICAST_INTERVAL = 50.0
        self.FEEDBACK_PERIOD = 100.0
        self.MIN_DIST = 20.0
        self.MAX_DIST = 60.0
        self.SPEED = 2.0

        ## Component configuration
        self.engineConfig = dict(engineConfig or {})
        self.netConfig = dict(netConfig or {})
        self.monitorConfig = dict(monitorConfig or {})

        self.__dict__.update(kwargs)

        if (self.nReceivers < 1):
            raise ValueError(f'nReceivers must be positive: {nReceivers}')

        ## Output
        if (outDir is None):
            outDir = os.path.join(os.getcwd(), 'outputs',
                                  f"{self.name}_{self.initTime}")
        self.outDir = outDir
        os.makedirs(self.outDir, exist_ok=True)
        self.logFile = os.path.join(self.outDir, f"{self.name}.log")

        ## Objects
        self.scheduler = None
        self.network = None
        self.source = None
        self.receivers: List[AdhocNode] = []
        self.history: Dict[str, NPFltArr] = {}
        self._record: Dict[str, List[float]] = {}
        self._rng = np.random.default_rng(self.seed)

        ## Logging
        self.log = None
        self.logging = logging

    ## Properties ============================================================#
    @property
    def logging(self)->str:
        """Get main logger configuration."""
        return self._logging

    @logging.setter
    def logging(self, logging:str)->None:
        """
        Set main and module logger configuration.

        Parameters
        ----------
        logging : str
            'all', 'none', 'noout', 'nofile'.
        """

        def setNoneLog()->None:
            """No console or file logging"""
            self.log = logger.noneLog(logger.MAIN_LOG)

        def setNoConsoleLog()->None:
            """File logging only"""
            if (self.log is not None):
                logger.deepRemoveHandler(logger.consoleHandler)
                logger.removeLog(logger.MAIN_LOG)
            self.log = logger.setupMain(fileName=self.logFile,
                                        outFormat=None)

        def setNoFileLog()->None:
            """Console logging only"""
            if (self.log is not None):
                logger.deepRemoveHandler(logger.fileHandler)
                logger.removeLog(logger.MAIN_LOG)
            self.log = logger.setupMain(fileFormat=None)

        def setDefaultLog()->None:
            """Console and file logging"""
            if (self.log is not None):
                logger.removeLog(logger.MAIN_LOG)
            self.log = logger.setupMain(fileName=self.logFile)

        logSettings = {
            'NONE': setNoneLog,
            'OFF': setNoneLog,
            'NOOUT': setNoConsoleLog,
            'QUIET': setNoConsoleLog,
            'NOFILE': setNoFileLog,
        }
        configLog = logSettings.get(logging.upper(), setDefaultLog)
        configLog()
        self._logging = logging

        # Module loggers follow the main handlers
        out = logging.upper() not in {'NONE', 'OFF'}
        for module in (engine, network, mac):
            module.log = logger.setupModule(module.log.name, file=False,
                                            out=out)

    ## Special Methods =======================================================#
    def __str__(self)->str:
        """User friendly description of the scenario."""
        line = '*' * 64
        cw = 20
        out = [
            line,
            f"{self.__class__.__name__}: {self.name}",
            line,
            f"{'Simulation time:':{cw}} {self.runTime:.0f} ms",
            f"{'Receivers:':{cw}} {self.nReceivers}",
            f"{'Placement:':{cw}} {self.MIN_DIST:.0f} - {self.MAX_DIST:.0f} m",
            f"{'Drift speed:':{cw}} {self.SPEED:.1f} m/s",
            f"{'Group interval:':{cw}} {self.TRAFFIC_INTERVAL:.1f} ms",
            f"{'Feedback period:':{cw}} {self.FEEDBACK_PERIOD:.1f} ms",
            f"{'RNG Seed:':{cw}} {self.seed}",
        ]
        if (self.network is not None):
            out.append(f"\n{self.network}")
        if (self.source is not None):
            out.append(f"\n{self.source.engine}")
        out.append(line)
        return "\n".join(out)

    ## Methods ===============================================================#
    def build(self)->None:
        """
        Create scheduler, network, source and receivers.

        Notes
        -----
        The source is address 1 at the origin. Receivers are addresses 2 to
        nReceivers + 1 at uniform random bearings and distances in
        [MIN_DIST, MAX_DIST].
        """

        self.scheduler = EventScheduler()
        netConfig = {'seed': self.seed, **self.netConfig}
        self.network = RateNet(self.scheduler, YansOfdmModel(), **netConfig)

        self.source = self._makeNode(1, (0.0, 0.0))
        self.receivers = []
        bearings = self._rng.uniform(0, 2 * np.pi, self.nReceivers)
        dists = self._rng.uniform(self.MIN_DIST, self.MAX_DIST,
                                  self.nReceivers)
        for i, (b, d) in enumerate(zip(bearings, dists)):
            pos = (d * np.cos(b), d * np.sin(b))
            self.receivers.append(self._makeNode(i + 2, pos))

        self._record = {'time': [], 'dataRate': [], 'mcs': [], 'minSnr': []}

    #--------------------------------------------------------------------------
    def run(self)->Dict[str, NPFltArr]:
        """
        Build the scenario if needed, run it and log the reports.

        Returns
        -------
        history : dict of ndarray
            Group decisions sampled at every group frame.
        """

        if (self.scheduler is None):
            self.build()
        self.log.info(f"{self}")
        start = time.time()

        self.scheduler.scheduleAt(0.0, self._groupTick)
        if (self.UNICAST_INTERVAL > 0):
            self.scheduler.scheduleAt(self.UNICAST_INTERVAL / 2,
                                      self._unicastTick)
        self.scheduler.run(until=self.runTime)
        for node in self.receivers:
            node.stop()

        self.history = {k: np.asarray(v, dtype=np.float64)
                        for k, v in self._record.items()}

        line = '*' * 64
        self.log.info(line)
        self.log.info(self.source.engine.getStatsReport())
        self.log.info(self.network.getStatsReport())
        realTime = round(time.time() - start)
        self.log.info('Run Time: (Real) %s, (Simulated) %.0f ms',
                      datetime.timedelta(seconds=realTime), self.runTime)
        self.log.info(line)
        return self.history

    #--------------------------------------------------------------------------
    def plot(self, fileName:Optional[str] = None)->None:
        """Save the group rate plot, by default into the output directory."""

        if (not self.history):
            raise RuntimeError('run() must complete before plot()')
        if (fileName is None):
            fileName = os.path.join(self.outDir, f"{self.name}_rate.png")
        plotting.plotGroupRate(self.history, fileName)

    ## Helper Methods ========================================================#
    def _makeNode(self, address:int, position)->AdhocNode:
        rateEngine = GroupRateEngine(ModeCatalog(), self.network.model,
                                     **self.engineConfig)
        monitor = RxQualityMonitor(**self.monitorConfig)
        return AdhocNode(address, self.network, position, engine=rateEngine,
                         monitor=monitor,
                         FEEDBACK_PERIOD=self.FEEDBACK_PERIOD)

    #--------------------------------------------------------------------------
    def _groupTick(self)->None:
        """Move receivers, send one group frame and record the decision."""

        self._drift(self.TRAFFIC_INTERVAL)
        frame = self.source.enqueue(bytes(self.PAYLOAD_SIZE), BCAST_ADDR)
        group = self.source.engine.group
        self._record['time'].append(self.scheduler.now)
        self._record['dataRate'].append(frame.mode.dataRate / 1e6)
        self._record['mcs'].append(frame.mode.mcs)
        self._record['minSnr'].append(group.minSnr)
        self.scheduler.scheduleAfter(self.TRAFFIC_INTERVAL, self._groupTick)

    #--------------------------------------------------------------------------
    def _unicastTick(self)->None:
        """Send one unicast frame to a random receiver."""

        dest = self.receivers[self._rng.integers(len(self.receivers))]
        self.source.enqueue(bytes(self.PAYLOAD_SIZE), dest.address)
        self.scheduler.scheduleAfter(self.UNICAST_INTERVAL, self._unicastTick)

    #--------------------------------------------------------------------------
    def _drift(self, dt:float)->None:
        """Move every receiver radially away from the source for dt ms."""

        step = self.SPEED * dt / 1e3
        for node in self.receivers:
            r = np.linalg.norm(node.position)
            if (r > 0):
                node.position = node.position * (1 + step / r)
