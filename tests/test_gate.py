"""Tests for a3met.gate module."""

from a3met.gate import OpenGate
from a3met.records import TimeKey


class TestOpenGate:
    """Tests for the archive rollover policy."""

    def test_first_call_opens(self):
        """Test that the first call opens regardless of time."""
        assert OpenGate().should_open(TimeKey(20100801, 43000)) is True

    def test_repeat_does_not_open(self):
        """Test that an immediate repeat never opens."""
        gate = OpenGate()
        assert gate.should_open(TimeKey(20100801, 43000)) is True
        assert gate.should_open(TimeKey(20100801, 43000)) is False

    def test_rollover_opens(self):
        """Test that 01:30 opens a new archive."""
        gate = OpenGate()
        gate.should_open(TimeKey(20100801, 223000))
        assert gate.should_open(TimeKey(20100802, 13000)) is True

    def test_rollover_repeat_does_not_open(self):
        """Test that a repeated 01:30 request does not reopen."""
        gate = OpenGate()
        gate.should_open(TimeKey(20100801, 13000))
        assert gate.should_open(TimeKey(20100801, 13000)) is False

    def test_other_times_do_not_open(self):
        """Test that times between rollovers keep the archive."""
        gate = OpenGate()
        gate.should_open(TimeKey(20100801, 13000))
        for time in (43000, 73000, 103000, 133000, 163000, 193000, 223000):
            assert gate.should_open(TimeKey(20100801, time)) is False

    def test_daily_sequence(self):
        """Test a two-day sequence of 3-hour timesteps."""
        gate = OpenGate()
        times = (13000, 43000, 73000, 103000, 133000, 163000, 193000, 223000)
        opened = [
            gate.should_open(TimeKey(date, time))
            for date in (20100801, 20100802)
            for time in times
        ]
        assert opened == [True] + [False] * 7 + [True] + [False] * 7

    def test_state_updated(self):
        """Test that the gate records the last key and clears the first flag."""
        gate = OpenGate()
        gate.should_open(TimeKey(20100801, 43000))
        assert gate.last_key == TimeKey(20100801, 43000)
        assert gate.first is False

    def test_return_to_earlier_key_opens_only_at_rollover(self):
        """Test that only the immediately preceding key is remembered."""
        gate = OpenGate()
        gate.should_open(TimeKey(20100801, 13000))
        gate.should_open(TimeKey(20100801, 43000))
        assert gate.should_open(TimeKey(20100801, 13000)) is True

    def test_reset(self):
        """Test that reset makes the next call a first call."""
        gate = OpenGate()
        gate.should_open(TimeKey(20100801, 43000))
        gate.reset()
        assert gate.should_open(TimeKey(20100801, 73000)) is True
