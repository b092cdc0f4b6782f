"""Tests for the response normalizer."""

from __future__ import annotations

import pytest

from stockprism.core.exceptions import PartialRecordLoss, SchemaMismatchError
from stockprism.core.models import DataType, Granularity, OutputSize
from stockprism.core.services.normalizer import (
    METADATA_SPELLINGS,
    FieldResolver,
    ResponseNormalizer,
    locate_keys,
    parse_number,
    parse_volume,
)


@pytest.fixture
def normalizer(metrics) -> ResponseNormalizer:
    return ResponseNormalizer(metrics=metrics)


class TestFieldResolver:
    """Test priority-ordered field resolution."""

    def test_numbered_spelling_wins_over_bare(self):
        resolver = FieldResolver(METADATA_SPELLINGS)
        source = {"Symbol": "BARE", "2. Symbol": "NUMBERED"}

        assert resolver.resolve(source, "symbol") == "NUMBERED"

    def test_case_insensitive_match(self):
        resolver = FieldResolver(METADATA_SPELLINGS)

        assert resolver.resolve({"3. LAST REFRESHED": "2024-01-02"}, "last_refreshed") == "2024-01-02"

    def test_empty_values_count_as_absent(self):
        resolver = FieldResolver(METADATA_SPELLINGS)
        source = {"2. Symbol": "  ", "Symbol": "IBM"}

        assert resolver.resolve(source, "symbol") == "IBM"
        assert resolver.resolve({"2. Symbol": None}, "symbol", "HINT") == "HINT"

    def test_time_zone_numbering_varies_by_function(self):
        resolver = FieldResolver(METADATA_SPELLINGS)

        assert resolver.resolve({"6. Time Zone": "US/Eastern"}, "time_zone") == "US/Eastern"
        assert resolver.resolve({"5. Time Zone": "UTC"}, "time_zone") == "UTC"
        assert resolver.resolve({"4. Time Zone": "US/Pacific"}, "time_zone") == "US/Pacific"


@pytest.mark.parametrize(
    ("value", "expected"),
    [("1200", 1200), (1200, 1200), ("1200.0", 1200), ("-5", None), ("12.5", None), ("abc", None), (None, None)],
)
def test_parse_volume(value, expected):
    assert parse_volume(value) == expected


def test_price_text_parses_back_to_value():
    for value in (0.0001, 161.69, 1234567.8901, 3.0):
        assert parse_number(f"{value:.4f}") == pytest.approx(value)
        assert parse_number(repr(value)) == value


class TestNormalizeIntraday:
    """Test intraday normalization."""

    def test_normalizes_well_formed_payload(self, normalizer, intraday_payload):
        result = normalizer.normalize(intraday_payload, DataType.INTRADAY, "ibm", Granularity.MINUTE_5)
        series = result.series

        assert result.skipped == 0
        assert result.partial_loss() is None
        assert series.metadata.symbol == "IBM"
        assert series.metadata.granularity is Granularity.MINUTE_5
        assert series.metadata.last_refreshed == "2024-01-02 16:00:00"
        assert series.metadata.output_size is OutputSize.COMPACT
        assert series.metadata.time_zone == "US/Eastern"
        assert len(series.points) == 3
        assert series.points["2024-01-02 16:00:00"].close == pytest.approx(161.69)

    def test_intraday_output_keeps_original_strings(self, normalizer, intraday_payload):
        series = normalizer.normalize(intraday_payload, DataType.INTRADAY, "IBM").series

        payload = series.to_payload()

        assert payload["metaData"]["interval"] == "5min"
        assert payload["timeSeries"]["2024-01-02 16:00:00"] == {
            "open": "161.5000",
            "high": "161.7500",
            "low": "161.4000",
            "close": "161.6900",
            "volume": "120345",
        }

    def test_bare_field_names_are_accepted(self, normalizer):
        payload = {
            "Meta Data": {"Symbol": "MSFT", "Last Refreshed": "2024-01-02 16:00", "Interval": "15min"},
            "Time Series (15min)": {
                "2024-01-02 16:00": {"open": "1", "high": "2", "low": "0.5", "close": "1.5", "volume": "10"},
            },
        }

        series = normalizer.normalize(payload, DataType.INTRADAY, "MSFT").series

        assert series.metadata.granularity is Granularity.MINUTE_15
        assert series.points["2024-01-02 16:00"].high == 2.0

    def test_interval_falls_back_to_requested(self, normalizer, intraday_payload):
        del intraday_payload["Meta Data"]["4. Interval"]

        series = normalizer.normalize(intraday_payload, DataType.INTRADAY, "IBM", "30min").series

        assert series.metadata.granularity is Granularity.MINUTE_30

    def test_missing_interval_everywhere_is_schema_mismatch(self, normalizer, intraday_payload):
        intraday_payload["Meta Data"]["4. Interval"] = "2min"

        with pytest.raises(SchemaMismatchError):
            normalizer.normalize(intraday_payload, DataType.INTRADAY, "IBM")

    def test_malformed_entries_are_dropped_individually(self, normalizer, intraday_payload, metrics):
        series_data = intraday_payload["Time Series (5min)"]
        series_data["2024-01-02 15:50:00"] = {"1. open": "abc", "2. high": "1", "3. low": "1", "4. close": "1", "5. volume": "1"}
        series_data["2024-01-02 15:45:00"] = {"1. open": "1", "2. high": "1", "3. low": "1", "4. close": "1", "5. volume": "-3"}
        series_data["2024-01-02 15:40:00"] = {"1. open": "1", "2. high": "1", "3. low": "1", "4. close": "1"}
        series_data["2024-01-02 15:35:00"] = "not an object"
        series_data["2024-01-02 15:30:00"] = {"1. open": "NaN", "2. high": "1", "3. low": "1", "4. close": "1", "5. volume": "1"}
        series_data["2024-01-02"] = {"1. open": "1", "2. high": "1", "3. low": "1", "4. close": "1", "5. volume": "1"}

        result = normalizer.normalize(intraday_payload, DataType.INTRADAY, "IBM")

        assert len(result.series.points) == 3
        assert sorted(result.skipped_keys) == sorted(
            [
                "2024-01-02 15:50:00",
                "2024-01-02 15:45:00",
                "2024-01-02 15:40:00",
                "2024-01-02 15:35:00",
                "2024-01-02 15:30:00",
                "2024-01-02",
            ]
        )
        loss = result.partial_loss()
        assert isinstance(loss, PartialRecordLoss)
        assert loss.total == 9
        assert metrics.registry.get_sample_value("stockprism_normalization_skipped_total", {"data_type": "intraday"}) == 6.0


class TestNormalizeDaily:
    """Test daily, weekly and monthly normalization."""

    def test_daily_defaults(self, normalizer, daily_payload):
        series = normalizer.normalize(daily_payload, DataType.DAILY, "IBM").series
        point = series.points["2024-01-03"]

        assert point.adjusted_close == point.close == 161.0
        assert point.dividend_amount == 0.0
        assert point.split_coefficient == 1.0
        assert series.to_payload()["timeSeries"]["2024-01-03"]["adjustedClose"] == 161.0

    def test_full_size_metadata(self, normalizer, daily_payload):
        daily_payload["Meta Data"]["4. Output Size"] = "Full size"

        series = normalizer.normalize(daily_payload, DataType.DAILY, "IBM").series

        assert series.metadata.output_size is OutputSize.FULL
        assert series.to_payload()["metaData"]["outputSize"] == "full"

    def test_missing_output_size_is_compact(self, normalizer, weekly_payload):
        series = normalizer.normalize(weekly_payload, DataType.WEEKLY, "IBM").series

        assert series.metadata.output_size is OutputSize.COMPACT

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("Full size", OutputSize.FULL),
            (" FULL ", OutputSize.FULL),
            ("Compact", OutputSize.COMPACT),
            ("fullest", OutputSize.COMPACT),
            ("", OutputSize.COMPACT),
            (None, OutputSize.COMPACT),
        ],
    )
    def test_output_size_spellings(self, raw, expected):
        assert OutputSize.parse(raw) is expected

    def test_adjusted_fields_are_parsed(self, normalizer, daily_payload):
        daily_payload["Time Series (Daily)"]["2024-01-03"].update(
            {"5. adjusted close": "80.5", "6. volume": "4000000", "7. dividend amount": "1.66", "8. split coefficient": "2.0"}
        )

        point = normalizer.normalize(daily_payload, DataType.DAILY, "IBM").series.points["2024-01-03"]

        assert point.adjusted_close == 80.5
        assert point.dividend_amount == 1.66
        assert point.split_coefficient == 2.0

    def test_unparsable_optional_field_uses_default(self, normalizer, daily_payload):
        daily_payload["Time Series (Daily)"]["2024-01-03"]["8. split coefficient"] = "n/a"

        point = normalizer.normalize(daily_payload, DataType.DAILY, "IBM").series.points["2024-01-03"]

        assert point.split_coefficient == 1.0

    def test_daily_key_fallback_marker(self, normalizer, daily_payload):
        daily_payload["Daily"] = daily_payload.pop("Time Series (Daily)")

        series = normalizer.normalize(daily_payload, DataType.DAILY, "IBM").series

        assert len(series.points) == 2

    def test_metadata_defaults(self, normalizer):
        payload = {
            "Meta Data": {"2. Symbol": "IBM"},
            "Weekly Time Series": {},
        }

        metadata = normalizer.normalize(payload, DataType.WEEKLY, "IBM").series.metadata

        assert metadata.information == "Weekly Time Series"
        assert metadata.time_zone == "US/Eastern"
        assert metadata.output_size is OutputSize.COMPACT
        assert metadata.last_refreshed

    def test_symbol_hint_used_when_missing(self, normalizer, monthly_payload):
        del monthly_payload["Meta Data"]["2. Symbol"]

        series = normalizer.normalize(monthly_payload, DataType.MONTHLY, " tsla ").series

        assert series.metadata.symbol == "TSLA"
        assert series.data_type is DataType.MONTHLY

    def test_datetime_keys_dropped_from_daily(self, normalizer, daily_payload):
        daily_payload["Time Series (Daily)"]["2024-01-04 10:00:00"] = {
            "1. open": "1", "2. high": "1", "3. low": "1", "4. close": "1", "5. volume": "1",
        }

        result = normalizer.normalize(daily_payload, DataType.DAILY, "IBM")

        assert result.skipped_keys == ["2024-01-04 10:00:00"]


class TestSchemaMismatch:
    """Test payloads whose sections cannot be located."""

    @pytest.mark.parametrize(
        "payload",
        [
            {"Time Series (5min)": {}},
            {"Meta Data": {"2. Symbol": "IBM"}},
            {"Meta Data": {}, "Time Series (5min)": {}},
            {"Meta Data": "IBM", "Time Series (5min)": {}},
            {"Meta Data": {"2. Symbol": "IBM", "4. Interval": "5min"}, "Time Series (5min)": []},
        ],
    )
    def test_schema_mismatch(self, normalizer, payload):
        with pytest.raises(SchemaMismatchError):
            normalizer.normalize(payload, DataType.INTRADAY, "IBM", Granularity.MINUTE_5)

    def test_available_keys_reported(self, normalizer):
        with pytest.raises(SchemaMismatchError) as exc_info:
            normalizer.normalize({"Foo": {}, "Bar": {}}, DataType.DAILY, "IBM")

        assert exc_info.value.available_keys == ["Foo", "Bar"]


class TestFirstMatchingKeyQuirk:
    """The first candidate key in payload order wins, even when a later one fits better."""

    def test_information_key_before_meta_data_is_taken_as_metadata(self, normalizer, intraday_payload):
        payload = {"Information Block": {"note": "first"}, **intraday_payload}

        meta_key, series_key = locate_keys(payload, DataType.INTRADAY)

        assert meta_key == "Information Block"
        assert series_key == "Time Series (5min)"

    def test_daily_marker_can_shadow_time_series_key(self, normalizer, daily_payload):
        payload = {"Meta Data": daily_payload["Meta Data"], "Daily Notes": {}, "Time Series (Daily)": daily_payload["Time Series (Daily)"]}

        result = normalizer.normalize(payload, DataType.DAILY, "IBM")

        assert result.series.points == {}
