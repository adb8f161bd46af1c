import math

from grouprate.stats import RunningStats


def test_empty_averages_are_nan():
    stats = RunningStats()
    assert stats.count == 0
    assert math.isnan(stats.averageMinSnr())
    assert math.isnan(stats.averageDataRate())
    assert math.isnan(stats.averageMcs())
    assert 'nan' in stats.getStatsReport()


def test_averages():
    stats = RunningStats()
    stats.addMinSnr(12.0)
    stats.addSelection(24_000_000, 4)
    stats.addMinSnr(20.0)
    stats.addSelection(54_000_000, 7)
    assert stats.count == 2
    assert stats.averageMinSnr() == 16.0
    assert stats.averageDataRate() == 39.0
    assert stats.averageMcs() == 5.5


def test_min_snr_without_selection_is_still_summed():
    stats = RunningStats()
    stats.addMinSnr(-2.0)
    stats.addMinSnr(10.0)
    stats.addSelection(6_000_000, 0)
    assert stats.sumMinSnr == 8.0
    assert stats.averageMinSnr() == 8.0


def test_report_lists_averages():
    stats = RunningStats()
    stats.addMinSnr(15.0)
    stats.addSelection(18_000_000, 3)
    report = stats.getStatsReport()
    assert 'Selections' in report
    assert '18.00 Mb/s' in report
    assert '15.00 dB' in report
