import logging
import math

import pytest

from conftest import db2lin
from grouprate.engine import GroupRateEngine
from grouprate.modes import ModeCatalog
from grouprate.station import FeedbackSample


def sample(signalDb, snrDb=None, loss=0, total=100):
    if (snrDb is None):
        snrDb = signalDb
    return FeedbackSample(None, signalDb, snrDb, loss, total)


@pytest.mark.parametrize('rateType', [0, 1])
def test_no_samples_selects_first_mode(makeEngine, rateType):
    engine = makeEngine(rateType=rateType)
    mode = engine.selectGroupMode()
    assert mode == engine.catalog.getMode(0)
    assert engine.group.groupMcs == 0
    assert engine.stats.count == 0


def test_threshold_scenario_picks_highest_qualifying_mode(makeEngine):
    engine = makeEngine(rateType=0, PER_THRESHOLD=0.001)
    mode = engine.updateInfo(1, sample(20.0))
    assert engine.catalog.indexOf(mode) == 5
    assert mode.modeId == 'OfdmRate36Mbps'
    assert engine.group.groupMcs == 5
    assert engine.group.minSnr == 20.0


def test_threshold_scenario_loss_policy_keeps_earliest(makeEngine):
    engine = makeEngine(rateType=0, perPolicy='loss')
    mode = engine.updateInfo(1, sample(20.0))
    assert engine.catalog.indexOf(mode) == 0


def test_throughput_selection(makeEngine):
    engine = makeEngine(rateType=1)
    assert engine.updateInfo(1, sample(23.0)).modeId == 'OfdmRate48Mbps'
    assert engine.updateInfo(1, sample(30.0)).modeId == 'OfdmRate54Mbps'


def test_no_qualifying_mode_falls_back_to_first(makeEngine):
    engine = makeEngine(rateType=0)
    mode = engine.updateInfo(1, sample(1.5))
    assert mode == engine.catalog.getMode(0)
    assert engine.stats.count == 1


def test_group_uses_minimum_signal_strength(makeEngine):
    engine = makeEngine()
    engine.updateInfo(1, sample(24.0))
    mode = engine.updateInfo(2, sample(12.0, snrDb=30.0))
    assert mode.modeId == 'OfdmRate18Mbps'
    assert engine.group.minSnr == 12.0


def test_group_metric_snr(makeEngine):
    engine = makeEngine(groupMetric='snr')
    engine.updateInfo(1, sample(3.0, snrDb=26.0))
    assert engine.group.groupMode.modeId == 'OfdmRate54Mbps'
    assert engine.group.minSnr == 26.0


@pytest.mark.parametrize('lowDb', [0.0, -3.0, -40.0])
def test_low_snr_keeps_previous_mode(makeEngine, lowDb):
    engine = makeEngine()
    before = engine.updateInfo(1, sample(20.0))
    after = engine.updateInfo(2, sample(lowDb))
    assert after == before
    assert engine.group.groupMode == before
    assert engine.stats.count == 1


def test_low_snr_without_previous_mode_uses_first(makeEngine):
    engine = makeEngine()
    mode = engine.updateInfo(1, sample(-6.0))
    assert mode == engine.catalog.getMode(0)


def test_update_info_is_idempotent(makeEngine):
    engine = makeEngine()
    s = sample(16.0, 18.0, loss=3, total=50)
    engine.updateInfo(4, s)
    first = [(x.address, x.signalStrength, x.snr, x.lossCount, x.totalCount)
             for x in engine.samples]
    engine.updateInfo(4, s)
    second = [(x.address, x.signalStrength, x.snr, x.lossCount, x.totalCount)
              for x in engine.samples]
    assert len(engine.samples) == 1
    assert first == second


def test_latest_sample_for_address_wins(makeEngine):
    engine = makeEngine()
    engine.updateInfo(4, sample(25.0))
    engine.updateInfo(4, sample(10.0))
    assert len(engine.samples) == 1
    assert engine.samples[0].signalStrength == 10.0
    assert engine.group.groupMode.modeId == 'OfdmRate12Mbps'


def test_stored_sample_is_a_copy(makeEngine):
    engine = makeEngine()
    s = sample(20.0)
    engine.updateInfo(4, s)
    s.signalStrength = -50.0
    assert engine.samples[0].signalStrength == 20.0
    assert engine.samples[0].address == 4
    assert s.address is None


@pytest.mark.parametrize('rateType', [0, 1])
def test_group_mode_always_in_catalog(makeEngine, rateType):
    engine = makeEngine(rateType=rateType)
    for db in range(-10, 40, 3):
        mode = engine.updateInfo(1, sample(float(db)))
        assert mode in engine.catalog.supportedModes()


def test_nonfinite_sample_left_out_of_minimum(makeEngine, caplog):
    engine = makeEngine()
    engine.updateInfo(1, sample(20.0))
    with caplog.at_level(logging.WARNING, logger='rate'):
        mode = engine.updateInfo(2, sample(float('nan')))
    assert mode.modeId == 'OfdmRate36Mbps'
    assert engine.group.minSnr == 20.0
    assert engine.stats.sumMinSnr == 40.0
    assert engine.stats.count == 2
    assert 'Peer 002' in caplog.text
    mode = engine.updateInfo(3, sample(10.0))
    assert mode.modeId == 'OfdmRate12Mbps'


def test_only_nonfinite_samples_keep_mode(makeEngine):
    engine = makeEngine()
    before = engine.updateInfo(1, sample(20.0))
    assert engine.updateInfo(1, sample(float('-inf'))) == before
    assert engine.stats.sumMinSnr == 20.0
    assert engine.stats.count == 1


def test_running_stats_accumulate(makeEngine):
    engine = makeEngine()
    engine.updateInfo(1, sample(20.0))
    engine.updateInfo(1, sample(10.0))
    assert engine.stats.count == 2
    assert engine.stats.sumMinSnr == 30.0
    assert engine.getAverageMinSnr() == 15.0
    assert engine.getAverageDataRate() == (36 + 12) / 2
    assert engine.getAverageMcs() == (5 + 2) / 2


def test_stats_are_nan_before_any_selection(makeEngine):
    engine = makeEngine()
    assert math.isnan(engine.getAverageMinSnr())
    assert math.isnan(engine.getAverageDataRate())
    assert math.isnan(engine.getAverageMcs())


def test_feedback_does_not_touch_station_snr(makeEngine):
    engine = makeEngine()
    engine.reportDataOk(4, db2lin(9.0), None, db2lin(9.5))
    engine.updateInfo(4, sample(25.0, snrDb=25.0))
    assert engine.stations[4].lastSnr == db2lin(9.5)


def test_reports_set_last_snr(makeEngine):
    engine = makeEngine()
    engine.reportRtsOk(3, 1.0, None, 42.0)
    assert engine.lookupStation(3).lastSnr == 42.0
    engine.reportDataOk(3, 1.0, None, 77.0)
    assert engine.lookupStation(3).lastSnr == 77.0


def test_failure_reports_are_noops(makeEngine):
    engine = makeEngine()
    engine.reportDataOk(3, 1.0, None, 50.0)
    engine.reportRxOk(3, 1.0, None)
    engine.reportRtsFailed(3)
    engine.reportDataFailed(3)
    engine.reportFinalRtsFailed(3)
    engine.reportFinalDataFailed(3)
    assert engine.stations[3].lastSnr == 50.0


def test_rts_mode_highest_threshold_below_snr(makeEngine):
    engine = makeEngine()
    engine.reportRtsOk(3, 0.0, None, db2lin(16.0))
    assert engine.selectRtsMode(3).modeId == 'OfdmRate24Mbps'
    engine.reportRtsOk(3, 0.0, None, db2lin(15.0))
    assert engine.selectRtsMode(3).modeId == 'OfdmRate18Mbps'


def test_rts_mode_defaults_without_snr(makeEngine):
    engine = makeEngine(defaultMode=1)
    assert engine.selectRtsMode(8) == engine.catalog.getMode(1)
    engine.reportRtsOk(8, 0.0, None, db2lin(1.0))
    assert engine.selectRtsMode(8) == engine.catalog.getMode(1)


def test_data_mode_uses_station_subset(makeEngine):
    engine = makeEngine()
    catalog = engine.catalog
    assert engine.selectDataMode(5) == catalog.getMode(0)
    for i in range(3):
        catalog.addStationMode(5, catalog.getMode(i))
    engine.reportDataOk(5, 0.0, None, db2lin(20.0))
    assert engine.selectDataMode(5).modeId == 'OfdmRate12Mbps'
    catalog.addAllStationModes(5)
    assert engine.selectDataMode(5).modeId == 'OfdmRate36Mbps'


def test_data_mode_default_when_nothing_delivers(makeEngine):
    engine = makeEngine(defaultMode=2)
    engine.catalog.addAllStationModes(5)
    engine.reportDataOk(5, 0.0, None, db2lin(0.5))
    assert engine.selectDataMode(5) == engine.catalog.getMode(2)


def test_yans_model_at_high_snr_selects_fastest_mode():
    for rateType in (0, 1):
        engine = GroupRateEngine(rateType=rateType)
        mode = engine.updateInfo(1, sample(40.0))
        assert mode.modeId == 'OfdmRate54Mbps'
        assert mode.mcs == 7


def test_yans_model_at_low_snr_selects_slow_mode():
    engine = GroupRateEngine()
    mode = engine.updateInfo(1, sample(4.0))
    assert mode.dataRate <= 9_000_000


def test_catalog_populated_once(makeEngine, cliff):
    engine = makeEngine()
    engine.updateInfo(1, sample(20.0))
    engine.updateInfo(2, sample(15.0))
    engine.selectRtsMode(1)
    assert cliff.calls == len(engine.catalog)


@pytest.mark.parametrize('kwargs', [
    {'rateType': 2},
    {'perPolicy': 'fastest'},
    {'groupMetric': 'rssi'},
    {'PER_THRESHOLD': 0},
    {'BER_THRESHOLD': 1.5},
])
def test_bad_configuration_rejected(cliff, kwargs):
    with pytest.raises(ValueError):
        GroupRateEngine(ModeCatalog(), cliff, **kwargs)


def test_empty_catalog_rejected(cliff):
    with pytest.raises(ValueError):
        GroupRateEngine(ModeCatalog([]), cliff)


def test_reports_render(makeEngine):
    engine = makeEngine()
    engine.updateInfo(1, sample(20.0))
    report = engine.getStatsReport()
    assert 'OfdmRate36Mbps' in report
    assert 'Avg Data Rate' in report
    assert 'rateType=0' in repr(engine)
