"""
Tests for stats provider response parsing.
"""

import pytest

from folding_competition.services.stats_provider import parse_points_response, parse_units_response
from folding_competition.utils.exceptions import ProviderProtocolError


class TestParsePoints:

    def test_earned(self):
        assert parse_points_response("folder", {"earned": 123456, "contributed": 1}) == 123456

    def test_missing_earned(self):
        with pytest.raises(ProviderProtocolError):
            parse_points_response("folder", {"score": 1})

    def test_not_an_object(self):
        with pytest.raises(ProviderProtocolError):
            parse_points_response("folder", [1, 2])

    def test_negative_earned(self):
        with pytest.raises(ProviderProtocolError):
            parse_points_response("folder", {"earned": -5})


class TestParseUnits:

    def test_single_entry(self):
        assert parse_units_response("folder", [{"finished": 42, "team": 1}]) == 42

    def test_empty_list_is_zero(self):
        assert parse_units_response("folder", []) == 0

    def test_multiple_entries_uses_lowest(self):
        assert parse_units_response("folder", [{"finished": 42}, {"finished": 7}]) == 7

    def test_not_a_list(self):
        with pytest.raises(ProviderProtocolError):
            parse_units_response("folder", {"finished": 1})

    def test_invalid_entry(self):
        with pytest.raises(ProviderProtocolError):
            parse_units_response("folder", [{"done": 1}])
