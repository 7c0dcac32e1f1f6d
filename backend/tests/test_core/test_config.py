"""
Tests for Settings parsing
"""
from decimal import Decimal

import pytest

from bazaar.core.config import Settings


class TestSettings:

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("PLATFORM_COMMISSION_RATE", raising=False)
        monkeypatch.delenv("CURRENCY", raising=False)

        settings = Settings(_env_file=None)

        assert settings.PLATFORM_COMMISSION_RATE == Decimal("0.10")
        assert settings.CURRENCY == "PKR"
        assert settings.STRIPE_WEBHOOK_TOLERANCE == 300

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("PLATFORM_COMMISSION_RATE", "0.15")
        monkeypatch.setenv("ENVIRONMENT", "Production")

        settings = Settings(_env_file=None)

        assert settings.PLATFORM_COMMISSION_RATE == Decimal("0.15")
        assert settings.is_production

    @pytest.mark.parametrize("raw, expected", [
        ("http://localhost:3000", ["http://localhost:3000"]),
        ("http://a.pk, https://b.pk", ["http://a.pk", "https://b.pk"]),
        ('["https://a.pk", "https://b.pk"]', ["https://a.pk", "https://b.pk"]),
    ])
    def test_allowed_origins(self, raw, expected):
        assert Settings(_env_file=None, ALLOWED_ORIGINS=raw).get_allowed_origins() == expected

    def test_empty_origins_fall_back_to_frontend(self):
        settings = Settings(_env_file=None, ALLOWED_ORIGINS="", FRONTEND_URL="https://bazaar.pk")

        assert settings.get_allowed_origins() == ["https://bazaar.pk"]
