"""Tests for the authentication rate limiters."""

import math
from unittest.mock import patch

import pytest

from authbridge.app.services.rate_limit import (
    DEFAULT_MESSAGE,
    DEFAULT_SKIP_ENDPOINTS,
    DEFAULT_STRICT_ENDPOINTS,
    BetterAuthRateLimiter,
    LegacyAuthRateLimiter,
    RateLimitConfig,
    RateLimitStore,
)

IP = "192.168.1.42"


class TestRateLimitConfig:
    """Tests for parsing raw configuration values."""

    @pytest.mark.parametrize("value", [None, False])
    def test_absent_or_false_disables(self, value):
        assert RateLimitConfig.from_value(value).enabled is False

    def test_true_enables_defaults(self):
        config = RateLimitConfig.from_value(True)

        assert config.enabled is True
        assert config.max == 10
        assert config.window_seconds == 60
        assert config.message == DEFAULT_MESSAGE
        assert config.skip_endpoints == DEFAULT_SKIP_ENDPOINTS
        assert config.strict_endpoints == DEFAULT_STRICT_ENDPOINTS

    def test_empty_mapping_enables(self):
        """Test that presence of a config block implies enabled."""
        assert RateLimitConfig.from_value({}).enabled is True

    def test_explicit_enabled_false(self):
        assert RateLimitConfig.from_value({"enabled": False, "max": 3}).enabled is False

    def test_camel_case_keys(self):
        config = RateLimitConfig.from_value({
            "max": 20,
            "windowSeconds": 120,
            "skipEndpoints": ["/ok"],
            "strictEndpoints": ["/sign-in"],
        })

        assert config.max == 20
        assert config.window_seconds == 120
        assert config.skip_endpoints == ("/ok",)
        assert config.strict_endpoints == ("/sign-in",)

    def test_unknown_keys_ignored(self):
        config = RateLimitConfig.from_value({"max": 5, "burst": 100})
        assert config.max == 5

    def test_non_list_endpoints_fall_back_to_defaults(self):
        config = RateLimitConfig.from_value({"skip_endpoints": "/session", "strict_endpoints": 3})

        assert config.skip_endpoints == DEFAULT_SKIP_ENDPOINTS
        assert config.strict_endpoints == DEFAULT_STRICT_ENDPOINTS

    @pytest.mark.parametrize("bad_max", [0, -1, "ten", 2.5, True])
    def test_malformed_max_falls_back_with_warning(self, bad_max):
        with patch("authbridge.app.services.rate_limit.models.logger") as mock_logger:
            config = RateLimitConfig.from_value({"max": bad_max})

        assert config.enabled is True
        assert config.max == 10
        mock_logger.warning.assert_called_once()

    def test_non_mapping_value_enables_defaults_with_warning(self):
        with patch("authbridge.app.services.rate_limit.models.logger") as mock_logger:
            config = RateLimitConfig.from_value("yes please")

        assert config.enabled is True
        assert config.max == 10
        mock_logger.warning.assert_called_once()

    def test_strict_max_rounds_up(self):
        assert RateLimitConfig(max=10).strict_max == 5
        assert RateLimitConfig(max=7).strict_max == 4
        assert RateLimitConfig(max=1).strict_max == 1


class TestLegacyAuthRateLimiter:
    """Tests for the flat legacy limiter."""

    @pytest.fixture
    def limiter(self, clock):
        limiter = LegacyAuthRateLimiter(RateLimitStore(), clock=clock)
        limiter.configure({"max": 10, "window_seconds": 60})
        return limiter

    def test_disabled_without_config(self, clock):
        """Test that configure(None) keeps the limiter disabled."""
        limiter = LegacyAuthRateLimiter(clock=clock)
        limiter.configure(None)

        result = limiter.check(IP, "signIn")

        assert limiter.is_enabled() is False
        assert result.allowed is True
        assert math.isinf(result.limit)
        assert math.isinf(result.remaining)
        assert result.current == 0
        assert result.reset_in == 0
        assert limiter.get_stats() == {"active_entries": 0, "enabled": False}

    def test_max_allowed_and_next_rejected(self, limiter):
        """Test the boundary: the max-th request passes, the (max+1)-th fails."""
        results = [limiter.check(IP, "signIn") for _ in range(11)]

        assert all(r.allowed for r in results[:10])
        assert results[9].remaining == 0
        assert results[10].allowed is False
        assert results[10].current == 11
        assert results[10].remaining == 0

    def test_count_is_monotonic_within_window(self, limiter, clock):
        counts = []
        for _ in range(15):
            counts.append(limiter.check(IP, "signIn").current)
            clock.advance(1)

        assert counts == sorted(counts)
        assert counts[0] == 1
        assert counts[-1] == 15

    def test_first_result(self, limiter):
        result = limiter.check(IP, "signIn")

        assert result.allowed is True
        assert result.current == 1
        assert result.limit == 10
        assert result.remaining == 9
        assert result.reset_in == 60

    def test_reset_in_counts_down(self, limiter, clock):
        limiter.check(IP, "signIn")
        clock.advance(20.5)

        result = limiter.check(IP, "signIn")

        assert result.reset_in == 40  # ceil(39.5)

    def test_window_elapses(self, limiter, clock):
        for _ in range(11):
            limiter.check(IP, "signIn")

        clock.advance(60)
        result = limiter.check(IP, "signIn")

        assert result.allowed is True
        assert result.current == 1

    def test_endpoints_are_counted_separately(self, limiter):
        for _ in range(10):
            limiter.check(IP, "signIn")

        assert limiter.check(IP, "signUp").allowed is True
        assert limiter.check(IP, "signIn").allowed is False

    def test_reset_behaves_like_first_call(self, limiter):
        """Test that reset(id) followed by check(id) looks like a first call."""
        for _ in range(12):
            limiter.check(IP, "signIn")

        limiter.reset(IP)
        result = limiter.check(IP, "signIn")

        assert result.allowed is True
        assert result.current == 1
        assert result.remaining == 9

    def test_reset_only_touches_one_client(self, limiter):
        limiter.check("10.0.0.1", "signIn")
        limiter.check("10.0.0.10", "signIn")

        limiter.reset("10.0.0.1")

        assert limiter.get_stats()["active_entries"] == 1

    def test_clear(self, limiter):
        limiter.check(IP, "signIn")
        limiter.check("10.0.0.1", "signIn")
        limiter.clear()
        assert limiter.get_stats() == {"active_entries": 0, "enabled": True}

    def test_rejection_logs_masked_ip(self, limiter):
        with patch("authbridge.app.services.rate_limit.limiter.logger") as mock_logger:
            for _ in range(11):
                limiter.check(IP, "signIn")

        mock_logger.warning.assert_called_once()
        message = mock_logger.warning.call_args[0][0]
        assert "192.168.*.*" in message
        assert IP not in message

    def test_rejection_logs_masked_ipv6(self, limiter):
        ipv6 = "2001:db8:85a3::8a2e:370:7334"
        with patch("authbridge.app.services.rate_limit.limiter.logger") as mock_logger:
            for _ in range(11):
                limiter.check(ipv6, "signIn")

        message = mock_logger.warning.call_args[0][0]
        assert "2001:****" in message
        assert ipv6 not in message

    def test_custom_message(self, clock):
        limiter = LegacyAuthRateLimiter(clock=clock)
        limiter.configure({"message": "Slow down"})
        assert limiter.get_message() == "Slow down"

    def test_purge_expired(self, limiter, clock):
        limiter.check(IP, "signIn")
        clock.advance(30)
        limiter.check(IP, "signUp")
        clock.advance(30)

        assert limiter.purge_expired() == 1
        assert limiter.get_stats()["active_entries"] == 1

    def test_reconfigure_replaces_snapshot(self, limiter):
        limiter.configure({"max": 2})
        assert limiter.config.max == 2
        assert limiter.config.window_seconds == 60

        limiter.configure(False)
        assert limiter.is_enabled() is False


class TestBetterAuthRateLimiter:
    """Tests for the tiered Better-Auth limiter."""

    @pytest.fixture
    def limiter(self, clock):
        limiter = BetterAuthRateLimiter(RateLimitStore(), clock=clock)
        limiter.configure({"max": 10, "window_seconds": 60})
        return limiter

    def test_empty_config_enables(self, clock):
        """Test that configure({}) enables the limiter with defaults."""
        limiter = BetterAuthRateLimiter(clock=clock)
        limiter.configure({})
        assert limiter.is_enabled() is True
        assert limiter.config.max == 10

    def test_disabled_by_default(self, clock):
        limiter = BetterAuthRateLimiter(clock=clock)
        assert limiter.is_enabled() is False
        assert limiter.check(IP, "/sign-in/email").allowed is True

    def test_strict_endpoint_sixth_request_rejected(self, limiter):
        """Test that strict endpoints allow ceil(max / 2) requests."""
        results = [limiter.check(IP, "/sign-in/email") for _ in range(6)]

        assert all(r.allowed for r in results[:5])
        assert results[0].limit == 5
        assert results[5].allowed is False
        assert results[5].current == 6

    def test_normal_endpoint_uses_full_limit(self, limiter):
        results = [limiter.check(IP, "/update-user") for _ in range(11)]

        assert results[0].limit == 10
        assert all(r.allowed for r in results[:10])
        assert results[10].allowed is False

    def test_skip_endpoints_never_limited(self, limiter):
        """Test that 1000 rapid skip-list calls are all allowed."""
        for _ in range(1000):
            result = limiter.check(IP, "/session")
            assert result.allowed is True
            assert math.isinf(result.limit)

        assert limiter.get_stats()["active_entries"] == 0

    def test_skip_matches_substring(self, limiter):
        assert limiter.check(IP, "/get-session").is_unlimited
        assert limiter.check(IP, "/callback/github").is_unlimited

    def test_callbacks_share_bucket(self, clock):
        limiter = BetterAuthRateLimiter(clock=clock)
        limiter.configure({"max": 3, "skip_endpoints": []})

        limiter.check(IP, "/callback/github")
        limiter.check(IP, "/callback/google")
        result = limiter.check(IP, "/callback/apple")

        assert result.current == 3

    def test_query_string_ignored(self, limiter):
        limiter.check(IP, "/sign-in/email?redirect=/home")
        result = limiter.check(IP, "/sign-in/email")
        assert result.current == 2

    def test_grouping_by_last_segment(self, limiter):
        limiter.check(IP, "/sign-in/email")
        result = limiter.check(IP, "/sign-up/email")
        # Both normalize to "email"
        assert result.current == 2

    @pytest.mark.parametrize(
        "path,expected",
        [
            ("/sign-in/email", "email"),
            ("/callback/github", "callback"),
            ("/callback/github?code=abc", "callback"),
            ("/update-user/", "update-user"),
            ("/", "root"),
            ("", "root"),
        ],
    )
    def test_normalize_endpoint(self, path, expected):
        assert BetterAuthRateLimiter.normalize_endpoint(path) == expected

    def test_store_key_layout(self, limiter):
        limiter.check(IP, "/sign-in/email")
        assert f"{IP}:email" in limiter.store

    def test_reset_then_check(self, limiter):
        for _ in range(6):
            limiter.check(IP, "/sign-in/email")

        limiter.reset(IP)
        result = limiter.check(IP, "/sign-in/email")

        assert result.allowed is True
        assert result.current == 1

    def test_non_list_skip_endpoints_use_defaults(self, clock):
        limiter = BetterAuthRateLimiter(clock=clock)
        limiter.configure({"skipEndpoints": "not-a-list"})
        assert limiter.check(IP, "/session").is_unlimited
