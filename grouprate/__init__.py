"""
grouprate: Closed-Loop Group Rate Adaptation for Wireless Links

Feedback-driven selection of modulation and coding modes for group and unicast
transmissions, with a discrete-event network to exercise it.

Modules
-------
engine : Group and per-station rate selection
feedback : Feedback message codec and periodic feedback scheduler
rxmonitor : Receive-side quality accumulation
modes : Transmission modes and mode catalog
errormodel : OFDM packet delivery model
station : Station, feedback and group quality records
stats : Running statistics of group decisions
errors : Exception types
events : Discrete-event scheduler
network : Shared wireless medium
mac : Ad-hoc MAC glue
simulator : Scenario driver
plotting : Result plots
logger : Logging configuration and utilities

Examples
--------
### Group rate from feedback:

>>> import grouprate as gr
>>> engine = gr.GroupRateEngine()
>>> sample = gr.FeedbackSample(None, 21.0, 23.5, 0, 40)
>>> mode = engine.updateInfo(7, sample)

### Feedback on the wire:

>>> raw = gr.writeFeedback(sample)
>>> decoded, rest = gr.readFeedback(raw)

### Full scenario:

>>> sim = gr.Simulator(name="Demo", runTime=5000, nReceivers=4, seed=1)
>>> history = sim.run()
>>> sim.plot()
"""

# Core modules - import for direct access
from . import engine
from . import errormodel
from . import errors
from . import events
from . import feedback
from . import logger
from . import mac
from . import modes
from . import network
from . import plotting
from . import rxmonitor
from . import simulator
from . import station
from . import stats

# Classes and functions for convenience
from .engine import GroupRateEngine
from .errormodel import YansOfdmModel
from .errors import GroupRateError, InvalidTid, MalformedFeedback, ModeNotFound
from .events import EventScheduler
from .feedback import FeedbackScheduler, readFeedback, writeFeedback
from .mac import AdhocNode
from .modes import Mode, ModeCatalog, ofdmModes
from .network import BCAST_ADDR, RateNet
from .rxmonitor import RxQualityMonitor
from .simulator import Simulator
from .station import FeedbackSample, GroupState, StationRecord
from .stats import RunningStats

# Version info
__version__ = "0.1.0"

# Define what gets imported with "from grouprate import *"
__all__ = [
    # Modules
    'engine',
    'errormodel',
    'errors',
    'events',
    'feedback',
    'logger',
    'mac',
    'modes',
    'network',
    'plotting',
    'rxmonitor',
    'simulator',
    'station',
    'stats',
    # Main classes
    'GroupRateEngine',
    'YansOfdmModel',
    'EventScheduler',
    'FeedbackScheduler',
    'RxQualityMonitor',
    'AdhocNode',
    'RateNet',
    'Simulator',
    'Mode',
    'ModeCatalog',
    'FeedbackSample',
    'GroupState',
    'StationRecord',
    'RunningStats',
    # Functions and constants
    'readFeedback',
    'writeFeedback',
    'ofdmModes',
    'BCAST_ADDR',
    # Exceptions
    'GroupRateError',
    'InvalidTid',
    'MalformedFeedback',
    'ModeNotFound',
]
