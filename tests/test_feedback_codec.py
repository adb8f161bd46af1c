import math
import struct

import pytest

from grouprate.errors import GroupRateError, MalformedFeedback
from grouprate.feedback import FEEDBACK_SIZE, readFeedback, writeFeedback
from grouprate.station import FeedbackSample


def test_header_is_24_bytes_little_endian():
    sample = FeedbackSample(None, 17.25, -3.5, 4, 120)
    raw = writeFeedback(sample)
    assert len(raw) == FEEDBACK_SIZE == 24
    assert raw == struct.pack('<ddII', 17.25, -3.5, 4, 120)


def test_round_trip_is_exact():
    sample = FeedbackSample(None, 0.1 + 0.2, -1e-300, 0, 2**32 - 1)
    decoded, rest = readFeedback(writeFeedback(sample))
    assert decoded.signalStrength == sample.signalStrength
    assert decoded.snr == sample.snr
    assert decoded.lossCount == 0
    assert decoded.totalCount == 2**32 - 1
    assert rest == b''


def test_round_trip_keeps_nan_and_negative_zero():
    sample = FeedbackSample(None, float('nan'), -0.0, 1, 1)
    decoded, _ = readFeedback(writeFeedback(sample))
    assert math.isnan(decoded.signalStrength)
    assert math.copysign(1.0, decoded.snr) == -1.0


def test_payload_follows_header():
    sample = FeedbackSample(None, 1.0, 2.0, 3, 4)
    raw = writeFeedback(sample, b'\x01\x02payload')
    decoded, rest = readFeedback(raw, address=9)
    assert rest == b'\x01\x02payload'
    assert decoded.address == 9
    assert (decoded.lossCount, decoded.totalCount) == (3, 4)


@pytest.mark.parametrize('size', [0, 1, 8, 16, 23])
def test_short_payload_is_malformed(size):
    with pytest.raises(MalformedFeedback):
        readFeedback(bytes(size))


def test_malformed_is_a_value_error():
    with pytest.raises(ValueError):
        readFeedback(b'short')
    assert issubclass(MalformedFeedback, GroupRateError)


@pytest.mark.parametrize('loss,total', [(-1, 0), (0, 2**32)])
def test_counters_outside_uint32_rejected(loss, total):
    with pytest.raises(ValueError):
        writeFeedback(FeedbackSample(None, 0.0, 0.0, loss, total))
