"""Tests for option records, merge_options and time span parsing."""

from datetime import timedelta

import pytest

from tokenauth.auth.options import (
    DecodeOptions,
    SignOptions,
    VerifyOptions,
    merge_options,
    timespan_seconds,
)


class TestMergeOptions:
    """Call-site fields win; defaults fill the gaps."""

    def test_both_none(self):
        assert merge_options(None, None) is None

    def test_only_defaults(self):
        defaults = SignOptions(issuer="iss")
        assert merge_options(defaults, None) is defaults

    def test_only_overrides(self):
        overrides = SignOptions(issuer="iss")
        assert merge_options(None, overrides) is overrides

    def test_override_wins_per_field(self):
        defaults = SignOptions(issuer="default-iss", audience="default-aud", expires_in=60)
        overrides = SignOptions(issuer="call-iss")

        merged = merge_options(defaults, overrides)

        assert merged == SignOptions(issuer="call-iss", audience="default-aud", expires_in=60)

    def test_falsy_override_still_wins(self):
        """Only None means unset; False and 0 are real values."""
        defaults = VerifyOptions(ignore_expiration=True, clock_tolerance=30)
        overrides = VerifyOptions(ignore_expiration=False, clock_tolerance=0)

        merged = merge_options(defaults, overrides)

        assert merged.ignore_expiration is False
        assert merged.clock_tolerance == 0

    def test_inputs_not_modified(self):
        defaults = VerifyOptions(audience="a")
        overrides = VerifyOptions(issuer="i")

        merge_options(defaults, overrides)

        assert defaults == VerifyOptions(audience="a")
        assert overrides == VerifyOptions(issuer="i")

    def test_decode_options(self):
        assert merge_options(DecodeOptions(), DecodeOptions(complete=True)).complete is True

    def test_mismatched_types_rejected(self):
        with pytest.raises(TypeError):
            merge_options(SignOptions(), VerifyOptions())


class TestTimespanSeconds:
    """Tests for timespan_seconds."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            (60, 60),
            (1.9, 1),
            (-1, -1),
            (timedelta(minutes=2), 120),
            ("90", 90),
            ("90s", 90),
            ("15m", 900),
            ("2h", 7200),
            ("2 hours", 7200),
            ("7d", 604800),
            ("1w", 604800),
            ("1y", 31557600),
            ("1500ms", 1),
            ("1.5h", 5400),
            ("-10s", -10),
        ],
    )
    def test_valid_values(self, value, expected):
        assert timespan_seconds(value) == expected

    @pytest.mark.parametrize("value", ["", "soon", "10 parsecs", "h1", True, None, [1]])
    def test_invalid_values(self, value):
        with pytest.raises(ValueError):
            timespan_seconds(value)
