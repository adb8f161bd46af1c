import matplotlib
matplotlib.use("Agg")

import pytest

from grouprate.engine import GroupRateEngine
from grouprate.events import EventScheduler
from grouprate.modes import ModeCatalog, ofdmModes
from grouprate.network import RateNet


# Threshold (dB) of each OFDM mode for the cliff-shaped delivery double.
CLIFF_THRESHOLDS_DB = [2.0, 5.0, 9.0, 11.0, 15.0, 18.0, 22.0, 25.0]


def db2lin(db):
    return 10 ** (db / 10)


class CliffModel:
    """Delivery double: certain delivery at or above a mode's threshold."""

    def __init__(self, thresholdsDb=CLIFF_THRESHOLDS_DB):
        self.thresholds = {
            mode.modeId: db2lin(db)
            for mode, db in zip(ofdmModes(), thresholdsDb)
        }
        self.calls = 0

    def calculateSnr(self, mode, ber):
        self.calls += 1
        return self.thresholds[mode.modeId]

    def deliveryProbability(self, mode, snrLinear, frameBits):
        return 1.0 if snrLinear >= self.thresholds[mode.modeId] else 0.0


class ConstantModel(CliffModel):
    """Delivery double with the same probability everywhere."""

    def __init__(self, pdr):
        super().__init__()
        self.pdr = pdr

    def deliveryProbability(self, mode, snrLinear, frameBits):
        return self.pdr


@pytest.fixture
def cliff():
    return CliffModel()


@pytest.fixture
def makeEngine(cliff):
    def _make(**kwargs):
        return GroupRateEngine(ModeCatalog(), cliff, **kwargs)
    return _make


@pytest.fixture
def scheduler():
    return EventScheduler()


@pytest.fixture
def makeNet(scheduler):
    def _make(model, **kwargs):
        kwargs.setdefault('seed', 7)
        return RateNet(scheduler, model, **kwargs)
    return _make
