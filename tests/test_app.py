import re

import pytest

from ethscope.app import EthscopeApp
from ethscope.config import Settings


class TestPaneStyles:
    @pytest.fixture
    def app(self):
        return EthscopeApp(Settings())

    def test_each_pane_carries_its_accent_class(self, app):
        assert app.statistics_panel.has_class("card", "statistics")
        assert app.blocks_panel.has_class("card", "blocks")
        assert app.transactions_panel.has_class("card", "transactions")
        assert app.main_panel.has_class("card", "main")

    def test_every_accent_class_has_a_rule(self, app):
        rules = set(re.findall(r"\.card\.([a-z]+) \{", EthscopeApp.CSS))
        assert rules == {"active", "statistics", "blocks", "transactions", "main"}
