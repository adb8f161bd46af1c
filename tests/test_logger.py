import logging

import pytest

from grouprate import logger


@pytest.fixture
def freshLogger(monkeypatch):
    monkeypatch.setattr(logger, 'log', None)
    monkeypatch.setattr(logger, 'consoleHandler', None)
    monkeypatch.setattr(logger, 'fileHandler', None)
    monkeypatch.setattr(logger, 'pending', [])
    yield logger
    logger.deepRemoveHandler(logger.fileHandler)
    logger.deepRemoveHandler(logger.consoleHandler)
    logger.removeLog(logger.MAIN_LOG)


def test_file_logging_carries_sim_time(freshLogger, tmp_path, monkeypatch):
    fileName = str(tmp_path / 'run.log')
    early = freshLogger.addLog('grtest.early')
    main = freshLogger.setupMain(fileName=fileName, outFormat=None)
    assert main.name == logger.MAIN_LOG
    assert freshLogger.fileHandler in early.handlers

    monkeypatch.setattr(logger, 'simTime', '123.45')
    early.info('group mode changed')
    freshLogger.fileHandler.flush()

    with open(fileName) as f:
        text = f.read()
    assert 'File logging started' in text
    assert 'group mode changed' in text
    assert '123.45' in text
    freshLogger.removeLog('grtest.early')


def test_module_logger_uses_main_handlers(freshLogger, tmp_path):
    freshLogger.setupMain(fileName=str(tmp_path / 'main.log'), outFormat=None)
    modLog = freshLogger.setupModule('grtest.mod', file=False, out=True)
    assert freshLogger.fileHandler in modLog.handlers
    assert modLog.propagate
    quiet = freshLogger.setupModule('grtest.mod', file=False, out=False)
    assert quiet is modLog
    assert len(quiet.handlers) == 1
    freshLogger.removeLog('grtest.mod')


def test_module_logger_with_own_file(freshLogger, tmp_path):
    fileName = str(tmp_path / 'rate.log')
    modLog = freshLogger.setupModule('grtest.own', fileName=fileName,
                                     file=True, out=False)
    modLog.warning('own file only')
    for handler in modLog.handlers:
        handler.flush()
    with open(fileName) as f:
        assert 'own file only' in f.read()
    freshLogger.removeLog('grtest.own')
    assert 'grtest.own' not in logging.Logger.manager.loggerDict


def test_none_log_has_no_handlers(freshLogger):
    thisLog = freshLogger.noneLog(logger.MAIN_LOG)
    assert thisLog.level == logging.WARNING
    assert thisLog.handlers == []
    assert freshLogger.log is thisLog


def test_multiline_messages_repeat_prefix():
    fmt = logger.CustomFormatter(logger.FMT_OUT)
    record = logging.makeLogRecord({
        'name': 'rate',
        'levelname': 'INFO',
        'funcName': 'groupRateAdaptation',
        'msg': 'first\nsecond',
        'simTime': '1.00',
    })
    lines = fmt.format(record).split('\n')
    assert len(lines) == 2
    assert all(l.startswith('|      1.00| rate') for l in lines)
    assert lines[1].endswith('second')


def test_function_name_is_bracketed(tmp_path):
    fmt = logger.CustomFormatter(logger.FMT_FILE, logger.FMT_DATE)
    record = logging.makeLogRecord({
        'name': 'mac',
        'levelname': 'DEBUG',
        'funcName': 'enqueue',
        'msg': 'hello',
        'simTime': '0.00',
    })
    assert '[enqueue]' in fmt.format(record)
