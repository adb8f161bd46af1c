import math

import pytest

from conftest import CliffModel, db2lin
from grouprate.errors import ModeNotFound
from grouprate.modes import Mode, ModeCatalog, ofdmModes


@pytest.fixture
def catalog():
    return ModeCatalog()


def test_ofdm_modes_are_rate_ordered():
    modes = ofdmModes()
    assert [m.dataRate // 1_000_000 for m in modes] == [6, 9, 12, 18, 24,
                                                        36, 48, 54]
    assert [m.mcs for m in modes] == list(range(8))
    assert modes[0].modeId == 'OfdmRate6Mbps'
    assert all(math.isnan(m.snrThreshold) for m in modes)


def test_mode_derived_quantities():
    modes = ofdmModes()
    assert modes[0].codedBitsPerSymbol == 48
    assert modes[7].codedBitsPerSymbol == 288
    assert modes[6].codingRate == pytest.approx(2 / 3)
    assert modes[7].codingRate == 0.75
    assert modes[0].modulation == 'BPSK'
    assert modes[3].modulation == 'QPSK'
    assert modes[5].modulation == '16QAM'
    assert 'OfdmRate54Mbps' in str(modes[7])


def test_identity_ignores_threshold(catalog):
    mode = ofdmModes()[2]
    catalog.setThreshold(mode, 7.5)
    stored = catalog.getMode(2)
    assert stored.snrThreshold == 7.5
    assert stored == mode
    assert hash(stored) == hash(mode)
    assert stored in catalog
    assert catalog.snrThreshold(mode) == 7.5


def test_lookup_and_index(catalog):
    mode = catalog.lookup('OfdmRate24Mbps')
    assert catalog.indexOf(mode) == 4
    assert catalog.getMode(4) is mode
    with pytest.raises(ModeNotFound):
        catalog.lookup('OfdmRate11Mbps')


@pytest.mark.parametrize('index', [-1, 8, 100])
def test_get_mode_out_of_range(catalog, index):
    with pytest.raises(ModeNotFound):
        catalog.getMode(index)


def test_mode_not_found_is_lookup_error(catalog):
    stranger = Mode('Dsss1Mbps', 1_000_000, '1/2', 1_000_000, 2, 0)
    with pytest.raises(LookupError):
        catalog.snrThreshold(stranger)
    with pytest.raises(ModeNotFound):
        catalog.addStationMode(3, stranger)


def test_register_ignores_duplicates(catalog):
    catalog.register(ofdmModes()[0])
    assert len(catalog) == 8
    custom = ModeCatalog(ofdmModes()[:3])
    assert [m.modeId for m in custom] == ['OfdmRate6Mbps', 'OfdmRate9Mbps',
                                          'OfdmRate12Mbps']


def test_ensure_populated_runs_once(catalog):
    model = CliffModel()
    assert not catalog.isPopulated
    catalog.ensurePopulated(model, 1e-5)
    catalog.ensurePopulated(model, 1e-3)
    assert catalog.isPopulated
    assert model.calls == 8
    assert catalog.getMode(7).snrThreshold == db2lin(25.0)
    assert catalog.snrThreshold(ofdmModes()[0]) == db2lin(2.0)


def test_station_modes(catalog):
    assert catalog.isBrandNew(9)
    assert catalog.stationModes(9) == []
    catalog.addStationMode(9, catalog.getMode(3))
    catalog.addStationMode(9, catalog.getMode(1))
    catalog.addStationMode(9, catalog.getMode(3))
    assert not catalog.isBrandNew(9)
    assert [catalog.indexOf(m) for m in catalog.stationModes(9)] == [3, 1]
    catalog.addAllStationModes(9)
    assert len(catalog.stationModes(9)) == 8


def test_station_modes_carry_thresholds(catalog):
    catalog.addAllStationModes(2)
    catalog.ensurePopulated(CliffModel(), 1e-5)
    assert all(not math.isnan(m.snrThreshold)
               for m in catalog.stationModes(2))


def test_table_rendering(catalog):
    assert 'OfdmRate6Mbps' in str(catalog)
    catalog.ensurePopulated(CliffModel(), 1e-5)
    assert '25.00' in str(catalog)
    assert 'isPopulated=True' in repr(catalog)
