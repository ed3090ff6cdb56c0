from swipefeed.services.rate_limiter import SlidingWindowRateLimiter


def make_limiter(clock, **limits):
    return SlidingWindowRateLimiter(limits or {"fanza": 10, "duga": 60}, clock=clock.ms)


class TestSlidingWindow:
    def test_allows_until_ceiling(self, clock):
        limiter = make_limiter(clock, fanza=3)
        for _ in range(3):
            assert limiter.can_make_request("fanza")
            limiter.record_request("fanza")
        assert limiter.can_make_request("fanza") is False

    def test_old_timestamps_never_count(self, clock):
        limiter = make_limiter(clock, fanza=2)
        limiter.record_request("fanza")
        limiter.record_request("fanza")

        clock.advance(seconds=59, milliseconds=999)
        assert limiter.can_make_request("fanza") is False

        # Exactly 60 000 ms later the old calls fall out of the window
        clock.advance(milliseconds=1)
        assert limiter.can_make_request("fanza") is True

    def test_window_slides_per_timestamp(self, clock):
        limiter = make_limiter(clock, duga=2)
        limiter.record_request("duga")
        clock.advance(seconds=30)
        limiter.record_request("duga")
        assert limiter.can_make_request("duga") is False

        clock.advance(seconds=30)
        assert limiter.can_make_request("duga") is True
        assert limiter.usage("duga").used == 1

    def test_providers_are_independent(self, clock):
        limiter = make_limiter(clock, fanza=1, duga=1)
        limiter.record_request("fanza")
        assert limiter.can_make_request("fanza") is False
        assert limiter.can_make_request("duga") is True

    def test_record_is_unconditional(self, clock):
        limiter = make_limiter(clock, fanza=1)
        limiter.record_request("fanza")
        limiter.record_request("fanza")
        assert limiter.usage("fanza").used == 2
        assert limiter.usage("fanza").remaining == 0

    def test_unknown_provider_uses_default_limit(self, clock):
        limiter = SlidingWindowRateLimiter({}, default_limit=1, clock=clock.ms)
        assert limiter.limit_for("other") == 1
        limiter.record_request("other")
        assert limiter.can_make_request("other") is False


class TestUsage:
    def test_usage_dict(self, clock):
        limiter = make_limiter(clock)
        limiter.record_request("fanza")
        assert limiter.usage("fanza").to_dict() == {"used": 1, "limit": 10, "remaining": 9}

    def test_get_all_usage_lists_configured_providers(self, clock):
        limiter = make_limiter(clock)
        usage = limiter.get_all_usage()
        assert set(usage) == {"fanza", "duga"}
        assert usage["duga"]["limit"] == 60

    def test_reset(self, clock):
        limiter = make_limiter(clock, fanza=1, duga=1)
        limiter.record_request("fanza")
        limiter.record_request("duga")
        limiter.reset("fanza")
        assert limiter.can_make_request("fanza") is True
        assert limiter.can_make_request("duga") is False
        limiter.reset()
        assert limiter.can_make_request("duga") is True
