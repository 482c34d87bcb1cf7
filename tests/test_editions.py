"""
Tests for edition assignment and configuration.
"""

from unittest.mock import patch

import pytest

from pair_quiz.config import Config
from pair_quiz.editions import Edition, get_edition_for_email, parse_edition_map


ASSIGNMENTS = {
    "alex@example.com": Edition.HER,
    "sam@example.com": Edition.HIS,
}


class TestParseEditionMap:
    """Tests for parsing EDITION_MAP."""

    def test_basic(self):
        """Test pairs are parsed and emails lower-cased."""
        parsed = parse_edition_map("Alex@Example.com=her, sam@example.com=HIS")

        assert parsed == ASSIGNMENTS

    def test_blank(self):
        """Test an empty map."""
        assert parse_edition_map("") == {}
        assert parse_edition_map(" , ") == {}

    def test_missing_separator(self):
        """Test malformed entries raise."""
        with pytest.raises(ValueError, match="Invalid edition assignment"):
            parse_edition_map("alex@example.com")

    def test_unknown_edition(self):
        """Test unknown editions raise with the valid options."""
        with pytest.raises(ValueError, match="Unknown edition"):
            parse_edition_map("alex@example.com=theirs")


class TestGetEditionForEmail:
    """Tests for resolving an email to an edition."""

    def test_assigned(self):
        """Test both editions resolve."""
        assert get_edition_for_email("alex@example.com", ASSIGNMENTS) == Edition.HER
        assert get_edition_for_email("sam@example.com", ASSIGNMENTS) == Edition.HIS

    def test_case_insensitive(self):
        """Test email case does not matter."""
        assert get_edition_for_email("ALEX@Example.COM", ASSIGNMENTS) == Edition.HER

    def test_unassigned(self):
        """Test unknown emails resolve to None."""
        assert get_edition_for_email("nobody@example.com", ASSIGNMENTS) is None

    def test_missing_email(self):
        """Test absent emails resolve to None."""
        assert get_edition_for_email(None, ASSIGNMENTS) is None
        assert get_edition_for_email("", ASSIGNMENTS) is None

    def test_defaults_to_config(self):
        """Test the configured map is used when none is passed."""
        with patch("pair_quiz.config.config.editions.assignments", ASSIGNMENTS):
            assert get_edition_for_email("sam@example.com") == Edition.HIS


class TestConfig:
    """Tests for configuration presets."""

    def test_defaults(self):
        """Test default polling interval."""
        cfg = Config()

        assert cfg.polling.interval_seconds > 0
        assert cfg.backend.name in ("supabase", "memory")

    def test_fast_mode(self):
        """Test the fast preset shortens polling."""
        cfg = Config.fast_mode()

        assert cfg.polling.interval_seconds < 1
