import numpy as np
import pytest

from grouprate.simulator import Simulator


@pytest.fixture
def sim(tmp_path):
    return Simulator(name='Test', runTime=300, nReceivers=3, seed=11,
                     outDir=str(tmp_path), logging='none',
                     MIN_DIST=20.0, MAX_DIST=40.0)


def test_build_places_receivers(sim):
    sim.build()
    assert sim.source.address == 1
    assert [r.address for r in sim.receivers] == [2, 3, 4]
    for r in sim.receivers:
        assert 20.0 <= np.linalg.norm(r.position) <= 40.0
    assert len(sim.network.nodes) == 4


def test_run_records_group_decisions(sim):
    history = sim.run()
    assert set(history) == {'time', 'dataRate', 'mcs', 'minSnr'}
    assert history['time'].size == 31
    assert history['time'][-1] == 300.0
    assert history['dataRate'][0] == 6.0
    assert history['dataRate'][-1] > 6.0
    assert len(sim.source.engine.samples) == 3
    assert sim.source.engine.stats.count > 0
    assert all(not r.feedback.isRunning for r in sim.receivers)


def test_engine_config_reaches_nodes(tmp_path):
    sim = Simulator(name='Cfg', runTime=100, nReceivers=1, seed=1,
                    outDir=str(tmp_path), logging='none',
                    engineConfig={'rateType': 1},
                    monitorConfig={'feedbackType': 2})
    sim.build()
    assert sim.source.engine.rateType == 1
    assert sim.receivers[0].monitor.feedbackType == 2


def test_plot_requires_run(sim, tmp_path):
    with pytest.raises(RuntimeError):
        sim.plot()
    sim.run()
    sim.plot()
    assert (tmp_path / 'Test_rate.png').exists()


def test_at_least_one_receiver(tmp_path):
    with pytest.raises(ValueError):
        Simulator(nReceivers=0, outDir=str(tmp_path), logging='none')
