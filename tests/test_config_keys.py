"""
Tests for the composite stock-config keys.

Pure functions, no database.
"""

import pytest

from medstock.models.stock import LocationKind
from medstock.utils.config_keys import config_key


class TestConfigKey:

    def test_central_key(self):
        assert config_key("item1", LocationKind.CENTRAL) == "item1_central"

    def test_central_key_ignores_location_id(self):
        assert config_key("item1", LocationKind.CENTRAL, "h1") == "item1_central"

    def test_unit_key_is_item_and_unit(self):
        assert config_key("X", LocationKind.UNIT, "U") == "X_U"

    def test_general_stock_key(self):
        assert config_key("X", LocationKind.GENERAL, "H") == "X_H_UBSGENERAL"

    def test_item_required(self):
        with pytest.raises(ValueError):
            config_key("", LocationKind.CENTRAL)

    @pytest.mark.parametrize("kind", [LocationKind.UNIT, LocationKind.GENERAL])
    def test_location_required_outside_central(self, kind):
        with pytest.raises(ValueError, match="location_id"):
            config_key("X", kind)
