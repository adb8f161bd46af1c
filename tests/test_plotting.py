import numpy as np

from grouprate.plotting import cm2inch, plotGroupRate


def makeHistory():
    t = np.arange(0, 1000, 10, dtype=np.float64)
    return {
        'time': t,
        'dataRate': np.where(t < 500, 36.0, 18.0),
        'mcs': np.where(t < 500, 5.0, 3.0),
        'minSnr': np.linspace(20.0, 12.0, t.size),
    }


def test_cm2inch():
    assert cm2inch(2.54) == 1.0


def test_plot_is_saved(tmp_path):
    fileName = tmp_path / 'rate.png'
    plotGroupRate(makeHistory(), str(fileName))
    assert fileName.exists()
    assert fileName.stat().st_size > 0


def test_plot_returns_figure():
    fig = plotGroupRate(makeHistory())
    assert len(fig.axes) >= 2
