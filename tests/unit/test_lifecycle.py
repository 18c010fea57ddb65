"""
Unit tests for key lifecycle helpers.
"""

from datetime import datetime, timedelta

import pytest

from koban.core.exceptions import ValidationError
from koban.features.keys.lifecycle import (
    compute_time_remaining,
    require_user_id,
    resolve_hours,
    sanitize_user_id,
)

NOW = datetime(2026, 1, 15, 12, 0, 0)


@pytest.mark.unit
class TestSanitizeUserId:

    def test_strips_markup_characters(self):
        assert sanitize_user_id("<script>'alice'</script>") == "scriptalice/script"

    def test_trims_whitespace(self):
        assert sanitize_user_id("   bob  ") == "bob"

    def test_caps_length(self):
        assert len(sanitize_user_id("x" * 300)) == 255

    @pytest.mark.parametrize("value", [None, 42, ["alice"], {"id": 1}])
    def test_non_string_becomes_empty(self, value):
        assert sanitize_user_id(value) == ""

    @pytest.mark.parametrize("value", ["", "   ", "<>\"'", None])
    def test_require_rejects_empty(self, value):
        with pytest.raises(ValidationError):
            require_user_id(value)


@pytest.mark.unit
class TestResolveHours:

    def test_default_when_omitted(self):
        assert resolve_hours(None, default_hours=24, max_hours=168) == 24

    @pytest.mark.parametrize("hours", [1, 24, 168])
    def test_accepts_range(self, hours):
        assert resolve_hours(hours, default_hours=24, max_hours=168) == hours

    @pytest.mark.parametrize("hours", [0, -1, 169, 1000])
    def test_rejects_out_of_range(self, hours):
        with pytest.raises(ValidationError):
            resolve_hours(hours, default_hours=24, max_hours=168)

    @pytest.mark.parametrize("hours", [True, 1.5, "12"])
    def test_rejects_non_integers(self, hours):
        with pytest.raises(ValidationError):
            resolve_hours(hours, default_hours=24, max_hours=168)


@pytest.mark.unit
class TestTimeRemaining:

    def test_hours_and_minutes(self):
        remaining = compute_time_remaining(NOW + timedelta(hours=1, minutes=30, seconds=59), NOW)

        assert remaining.expired is False
        assert remaining.hours == 1
        assert remaining.minutes == 30
        assert remaining.formatted == "1h 30m"
        assert remaining.remaining_seconds == 5459

    def test_less_than_a_second_left_is_not_expired(self):
        remaining = compute_time_remaining(NOW + timedelta(milliseconds=500), NOW)

        assert remaining.expired is False
        assert remaining.formatted == "0h 0m"

    @pytest.mark.parametrize("delta", [timedelta(0), timedelta(seconds=-1), timedelta(days=-3)])
    def test_expired(self, delta):
        remaining = compute_time_remaining(NOW + delta, NOW)

        assert remaining.expired is True
        assert remaining.remaining_seconds == 0
        assert remaining.hours == 0
        assert remaining.minutes == 0
        assert remaining.formatted == "Expired"

    def test_is_pure(self):
        expires_at = NOW + timedelta(hours=5)

        assert compute_time_remaining(expires_at, NOW) == compute_time_remaining(expires_at, NOW)
