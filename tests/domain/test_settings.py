"""Derived settings."""

from order_service.utils.settings import Settings


class TestOrderLockTtl:
    def test_default_gateway_worst_case(self):
        # 3 attempts x (10s connect + 10s read) + 1s + 2s backoff
        assert Settings().gateway_worst_case_seconds() == 63

    def test_lock_outlives_a_full_qr_generation(self):
        settings = Settings(order_lock_ttl_seconds=60)
        assert settings.effective_order_lock_ttl() == 78
        assert settings.effective_order_lock_ttl() > settings.gateway_worst_case_seconds()

    def test_larger_configured_ttl_is_kept(self):
        assert Settings(order_lock_ttl_seconds=300).effective_order_lock_ttl() == 300

    def test_follows_gateway_settings(self):
        settings = Settings(gateway_max_attempts=5, gateway_timeout_seconds=4, gateway_backoff_seconds=2)
        # 5 x 8s + (2 + 4 + 8 + 16)s
        assert settings.gateway_worst_case_seconds() == 70
        assert settings.effective_order_lock_ttl() == 85
