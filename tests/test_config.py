"""
Tests for index configuration.
"""

from datetime import timedelta

import pytest

from conftest import NOW
from reindexer.core.config import IndexConfiguration, parse_interval
from reindexer.core.errors import ConfigurationError


class TestParseInterval:
    """Test relative interval parsing."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("5 minutes", timedelta(minutes=5)),
            ("1 minute", timedelta(minutes=1)),
            ("1 hour", timedelta(hours=1)),
            ("2 days", timedelta(days=2)),
            ("1 week", timedelta(weeks=1)),
            ("90 seconds", timedelta(seconds=90)),
            ("1 day, 12 hours", timedelta(days=1, hours=12)),
            ("1 hour and 30 minutes", timedelta(hours=1, minutes=30)),
            ("  3 Hours ", timedelta(hours=3)),
        ],
    )
    def test_valid_intervals(self, text, expected):
        assert parse_interval(text) == expected

    @pytest.mark.parametrize("text", ["", "soon", "5", "five minutes", "3 fortnights", "1 hour,"])
    def test_invalid_intervals(self, text):
        with pytest.raises(ConfigurationError):
            parse_interval(text)


class TestIndexConfiguration:
    """Test configuration defaults and validation."""

    def test_defaults(self):
        cfg = IndexConfiguration()

        assert cfg.batch_size == 100
        assert cfg.interval() == timedelta(minutes=5)
        assert cfg.searchable_base_classes == []

    def test_cutoff(self):
        cfg = IndexConfiguration(sync_interval="1 hour")
        assert cfg.cutoff(NOW) == NOW - timedelta(hours=1)

    def test_timedelta_interval(self):
        cfg = IndexConfiguration(sync_interval=timedelta(days=1))
        assert cfg.cutoff(NOW) == NOW - timedelta(days=1)

    def test_cutoff_defaults_to_aware_now(self):
        assert IndexConfiguration().cutoff().tzinfo is not None

    @pytest.mark.parametrize("batch_size", [0, -1])
    def test_rejects_non_positive_batch_size(self, batch_size):
        with pytest.raises(ConfigurationError):
            IndexConfiguration(batch_size=batch_size)

    def test_rejects_bad_interval_early(self):
        with pytest.raises(ConfigurationError):
            IndexConfiguration(sync_interval="whenever")

    def test_rejects_zero_workers(self):
        with pytest.raises(ConfigurationError):
            IndexConfiguration(workers=0)

    @pytest.mark.parametrize("pending", [0, -3])
    def test_rejects_non_positive_max_pending_batches(self, pending):
        with pytest.raises(ConfigurationError, match="max_pending_batches"):
            IndexConfiguration(max_pending_batches=pending)

    def test_max_pending_batches_defaults_to_unset(self):
        assert IndexConfiguration().max_pending_batches is None
        assert IndexConfiguration(max_pending_batches=8).max_pending_batches == 8

    def test_from_dict_ignores_unknown_keys(self):
        cfg = IndexConfiguration.from_dict(
            {"batch_size": 50, "searchable_base_classes": ["Page"], "use_replica": True}
        )

        assert cfg.batch_size == 50
        assert cfg.searchable_base_classes == ["Page"]
