import pytest

from conftest import address, build_block
from ethscope import views
from ethscope.actions import detail_items
from ethscope.models import AddressInfo, BlockWithReceipts, ContractSource, Statistics, TxWithReceipt
from ethscope.route import ActiveBlock, AddressView, BlockView, InputDataView, Route, Searching
from ethscope.state import AppState
from ethscope.widget import SelectableList


@pytest.fixture
def state():
    return AppState()


class TestFormatting:
    @pytest.mark.parametrize(
        "seconds,expected",
        [(5, "5s ago"), (75, "1m 15s ago"), (3 * 3600 + 120, "3h 2m ago"), (-3, "0s ago")],
    )
    def test_format_age(self, seconds, expected):
        assert views.format_age(1000, now=1000 + seconds) == expected

    def test_format_timestamp(self):
        assert views.format_timestamp(0) == "-"
        assert views.format_timestamp("bad") == "-"
        assert views.format_timestamp(1_700_000_000) == "2023-11-14 22:13:20 UTC"

    def test_fit_column(self):
        assert views.fit_column("abc", 5) == "abc  "
        assert views.fit_column("abcdef", 4) == "abc…"

    def test_statistics_lines(self):
        stats = Statistics(ethusd=3000.5, node_count=12, last_safe_block=build_block(7))
        lines = views.statistics_lines(stats)
        assert lines[0] == "ETH price: $3,000.50"
        assert "Suggested base fee: -" in lines
        assert "Last safe block: 7" in lines
        assert "Last finalized block: -" in lines


class TestPanes:
    def test_lists_show_loading_until_fetched(self, state):
        assert views.latest_blocks_text(state).plain == "... loading"
        assert views.latest_transactions_text(state).plain == "... loading"

    def test_latest_blocks_use_ens_names(self, state):
        state.latest_blocks = SelectableList([build_block(100)])
        state.ens.insert(address(100), "builder.eth")
        text = views.latest_blocks_text(state).plain
        assert "100" in text
        assert "builder.eth" in text

    def test_welcome(self, state):
        assert "Welcome to ethscope" in views.main_text(state, []).plain
        assert views.main_title(state.current_route()) == "Welcome"

    def test_searching_shows_query(self, state):
        state.push_route(Route(Searching("vitalik.eth"), ActiveBlock.MAIN))
        state.pending = 1
        assert "Searching vitalik.eth" in views.main_text(state, [], now_ms=0).plain

    def test_searching_without_pending_command_shows_failure(self, state):
        state.push_route(Route(Searching("vitalik.eth"), ActiveBlock.MAIN))
        text = views.main_text(state, [], now_ms=0).plain
        assert text == "Search failed: vitalik.eth"

    def test_not_found(self, state):
        state.push_route(Route(BlockView(None), ActiveBlock.MAIN))
        assert views.main_text(state, []).plain == "Not Found"

    def test_block_view_lists_items(self, state):
        route = Route(BlockView(BlockWithReceipts(build_block(42))), ActiveBlock.MAIN)
        state.push_route(route)
        text = views.main_text(state, detail_items(route)).plain
        assert "Block height: 42" in text
        assert "▸ Transactions" in text
        assert "▸ Parent hash" in text

    def test_input_data_pending_decode(self, state):
        tx = TxWithReceipt(build_block(1).transactions[0], None)
        state.push_route(Route(InputDataView(tx), ActiveBlock.MAIN))
        assert "Could not decode" in views.main_text(state, []).plain
        state.pending = 1
        assert "Decoding" in views.main_text(state, []).plain

    def test_address_shows_selected_source(self, state):
        source = ContractSource("Token", "v0.8.20", True, 200, "MIT", "contract Token {}")
        info = AddressInfo(address(9), balance=10**18, contract_source=source)
        route = Route(AddressView(info), ActiveBlock.MAIN)
        state.push_route(route)
        state.detail = SelectableList(detail_items(route), header_size=0)
        state.detail_for = route.id
        assert "contract Token {}" not in views.main_text(state, detail_items(route)).plain
        state.detail.next()
        text = views.main_text(state, detail_items(route)).plain
        assert "Balance: 1.000000 ETH" in text
        assert "contract Token {}" in text
