"""
Logging for rate adaptation runs.

Every record carries the simulated time (ms) of the event that produced it, so
a group mode change can be lined up with the feedback that caused it. One main
logger owns a console and a file handler; module loggers ('rate', 'ratenet',
'mac', ...) share those handlers or write a file of their own.

Functions
---------
setupMain(fileName, fileFormat, fileLevel, outFormat, outLevel)
    Create the main logger and its shared handlers.
setupModule(name, fileName, file, out)
    (Re)configure a module logger on top of the shared handlers.
addLog(name)
    Module logger that picks up the shared handlers once they exist.
noneLog(name)
    Silence a logger down to warnings.
removeLog(name), removeHandlers(name), deepRemoveHandler(handler)
    Detach and close handlers.

Notes
-----
The EventScheduler writes simTime before each callback; customRecordFactory
copies it onto every record.
"""

from typing import Iterator, Optional
from datetime import datetime
import logging
import os

#-----------------------------------------------------------------------------#

# Logging levels
DEBUG = logging.DEBUG
INFO = logging.INFO
WARNING = logging.WARNING

# Record formats
FMT_DATE = '%M:%S'
FMT_OUT = '|%(simTime)10s| %(name)-9s : %(levelname)-7s > %(message)s'
FMT_FILE = ('|%(simTime)10s %(asctime)s| %(name)-9s %(levelname)-7s '
            '%(funcName)s : %(message)s')

# Width of the bracketed function name column
FUNC_WIDTH = 24

# Main logger name
MAIN_LOG = 'grouprate'

# Global variables -----------------------------------------------------------#

log = None
consoleHandler = None
fileHandler = None

# Names passed to addLog() before setupMain()
pending = []

oldFactory = logging.getLogRecordFactory()
simTime = '0.00'

###############################################################################

class CustomFormatter(logging.Formatter):
    """
    Formatter that brackets function names and prefixes every message line.

    Multi-line reports (engine and network summaries) keep the time and
    logger columns on each line so they stay greppable.
    """

    def format(self, record):
        if not (record.funcName.startswith("[")):
            record.funcName = f"{'[' + record.funcName + ']':{FUNC_WIDTH}}"

        if (isinstance(record.msg, str) and '\n' in record.msg):
            record = logging.makeLogRecord(record.__dict__)
            head = self._fmt.partition('%(message)s')[0]
            if ('%(asctime)s' in head):
                record.asctime = self.formatTime(record, self.datefmt)
            prefix = head % record.__dict__
            record.msg = record.msg.replace('\n', '\n' + prefix)

        return super().format(record)

###############################################################################

def customRecordFactory(*args, **kwargs):
    """Build a record through the original factory and stamp simTime."""

    record = oldFactory(*args, **kwargs)
    record.simTime = simTime
    return record

###############################################################################

def _makeHandler(handler:logging.Handler,
                 name:str,
                 level:int,
                 fmt:str,
                 datefmt:Optional[str] = None,
                 )->logging.Handler:
    handler.set_name(name)
    handler.setLevel(level)
    handler.setFormatter(CustomFormatter(fmt, datefmt))
    return handler

def _loggers()->Iterator[logging.Logger]:
    """Registered loggers, skipping logging's placeholders."""
    for thisLog in list(logging.Logger.manager.loggerDict.values()):
        if (isinstance(thisLog, logging.Logger)):
            yield thisLog

###############################################################################

def addMainHandlers(subLog:logging.Logger)->None:
    """Attach whichever shared handlers currently exist to subLog."""

    for handler in (consoleHandler, fileHandler):
        if (handler is not None):
            subLog.addHandler(handler)
    subLog.debug('%s logger activated', subLog.name)

###############################################################################

def setupMain(fileName:Optional[str] = MAIN_LOG+'.log',
              fileFormat:Optional[str] = FMT_FILE,
              fileLevel:int = DEBUG,
              outFormat:Optional[str] = FMT_OUT,
              outLevel:int = INFO,
              )->logging.Logger:
    """
    Create and return the main logger.

    Parameters
    ----------
    fileName : str, default='grouprate.log'
        Shared log file. None disables file output.
    fileFormat : str, optional
        File record format. None disables file output.
    fileLevel : int, default=DEBUG
    outFormat : str, optional
        Console record format. None disables console output.
    outLevel : int, default=INFO

    Returns
    -------
    log : logging.Logger
        The main logger. Later calls return it unchanged until removeLog()
        resets it.
    """

    global log, consoleHandler, fileHandler

    if (log is not None):
        return log

    logging.setLogRecordFactory(customRecordFactory)
    log = logging.getLogger(MAIN_LOG)
    log.setLevel(DEBUG)

    if (outFormat is not None):
        if (consoleHandler is None):
            consoleHandler = _makeHandler(logging.StreamHandler(),
                                          'Console handler', outLevel,
                                          outFormat)
        log.addHandler(consoleHandler)
        log.info('Console logging started')

    if (fileFormat is not None and fileName is not None):
        if (fileHandler is None):
            fileHandler = _makeHandler(logging.FileHandler(fileName),
                                       'File handler', fileLevel,
                                       fileFormat, FMT_DATE)
        log.addHandler(fileHandler)
        log.info('File logging started at %s in %s',
                 datetime.now().strftime("%m/%d/%Y %H:%M:%S"),
                 os.path.basename(fileName))

    while pending:
        addMainHandlers(logging.getLogger(pending.pop()))

    return log

###############################################################################

def addLog(name:str)->logging.Logger:
    """
    Return logger name, sharing the main handlers.

    An existing logger is returned as is. A new one created before
    setupMain() is queued and receives the handlers there.
    """

    if (name in logging.Logger.manager.loggerDict):
        return logging.getLogger(name)

    thisLog = logging.getLogger(name)
    thisLog.setLevel(DEBUG)
    if (log is None):
        pending.append(name)
    else:
        addMainHandlers(thisLog)
    return thisLog

###############################################################################

def noneLog(name:str)->logging.Logger:
    """Strip the handlers of logger name and raise its level to WARNING."""

    global log

    thisLog = logging.getLogger(name)
    thisLog.setLevel(WARNING)
    removeHandlers(name)
    if (name == MAIN_LOG):
        log = thisLog
    return thisLog

###############################################################################

def closeHandler(handler:logging.Handler)->None:
    """Close handler, forgetting it if it is one of the shared handlers."""

    global consoleHandler, fileHandler

    handler.close()
    if (handler is consoleHandler):
        consoleHandler = None
    elif (handler is fileHandler):
        fileHandler = None

###############################################################################

def removeHandlers(name:str)->None:
    """Detach every handler of logger name; close those no logger keeps."""

    thisLog = logging.getLogger(name)
    for handler in list(thisLog.handlers):
        thisLog.removeHandler(handler)
        if (not any(handler in l.handlers for l in _loggers())):
            closeHandler(handler)

###############################################################################

def deepRemoveHandler(handler:Optional[logging.Handler])->None:
    """Detach handler from every logger and close it. None is ignored."""

    if (handler is None):
        return
    for thisLog in _loggers():
        if (handler in thisLog.handlers):
            thisLog.removeHandler(handler)
    closeHandler(handler)

###############################################################################

def removeLog(name:str)->None:
    """
    Forget logger name after removing its handlers.

    Removing the main logger lets setupMain() build it again.
    """

    global log

    thisLog = logging.getLogger(name)
    removeHandlers(name)
    logging.Logger.manager.loggerDict.pop(name, None)
    if (thisLog is log):
        log = None

###############################################################################

def setupModule(name:str,
                fileName:Optional[str] = None,
                file:bool = False,
                out:bool = True,
                )->logging.Logger:
    """
    Configure and return the module logger name.

    Parameters
    ----------
    name : str
        Logger name, e.g. 'rate', 'ratenet', 'mac'.
    fileName : str, optional
        Own log file, default '<name>.log'. Used only with file=True.
    file : bool, default=False
        Write to an own file instead of the shared log file.
    out : bool, default=True
        Echo to the shared console handler, if there is one.

    Returns
    -------
    modLog : logging.Logger
        The logger, with any previous handlers replaced. Records still
        propagate to the root logger.
    """

    logging.setLogRecordFactory(customRecordFactory)
    modLog = logging.getLogger(name)
    modLog.setLevel(DEBUG)
    for handler in list(modLog.handlers):
        modLog.removeHandler(handler)

    if (out and consoleHandler is not None):
        modLog.addHandler(consoleHandler)

    if (file):
        fileName = fileName or f'{name}.log'
        level = fileHandler.level if fileHandler is not None else DEBUG
        modLog.addHandler(_makeHandler(logging.FileHandler(fileName),
                                       f'{name} file handler', level,
                                       FMT_FILE, FMT_DATE))
        modLog.info('%s file logging started in %s', name,
                    os.path.basename(fileName))
    elif (fileHandler is not None):
        modLog.addHandler(fileHandler)

    return modLog
