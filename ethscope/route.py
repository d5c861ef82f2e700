from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Union

from ethscope.models import AddressInfo, BlockWithReceipts, TxWithReceipt


class ActiveBlock(Enum):
    SEARCH_BAR = "search_bar"
    LATEST_BLOCKS = "latest_blocks"
    LATEST_TRANSACTIONS = "latest_transactions"
    MAIN = "main"


@dataclass(frozen=True)
class Welcome:
    pass


@dataclass(frozen=True)
class Searching:
    query: str


@dataclass(frozen=True)
class AddressView:
    payload: Optional[AddressInfo]


@dataclass(frozen=True)
class BlockView:
    payload: Optional[BlockWithReceipts]


@dataclass(frozen=True)
class BlockTransactionsView:
    payload: Optional[BlockWithReceipts]


@dataclass(frozen=True)
class BlockWithdrawalsView:
    payload: Optional[BlockWithReceipts]


@dataclass(frozen=True)
class TransactionView:
    payload: Optional[TxWithReceipt]


@dataclass(frozen=True)
class InputDataView:
    payload: Optional[TxWithReceipt]


RouteId = Union[
    Welcome,
    Searching,
    AddressView,
    BlockView,
    BlockTransactionsView,
    BlockWithdrawalsView,
    TransactionView,
    InputDataView,
]


@dataclass(frozen=True)
class Route:
    id: RouteId
    active_block: ActiveBlock

    def with_active_block(self, active_block: ActiveBlock) -> "Route":
        return replace(self, active_block=active_block)

    def same_view(self, other: "Route") -> bool:
        """True if both frames show the same kind of view (payloads may differ)."""
        return type(self.id) is type(other.id)


def root_route() -> Route:
    return Route(Welcome(), ActiveBlock.LATEST_BLOCKS)


class NavigationStack:
    """Stack of route frames. The root frame is permanent."""

    def __init__(self, root: Route | None = None) -> None:
        self._routes: list[Route] = [root or root_route()]

    def __len__(self) -> int:
        return len(self._routes)

    @property
    def depth(self) -> int:
        return len(self._routes)

    def push(self, route: Route) -> None:
        self._routes.append(route)

    def pop(self) -> Route | None:
        if len(self._routes) > 1:
            return self._routes.pop()
        return None

    def current(self) -> Route:
        return self._routes[-1]

    def replace_current(self, route: Route) -> None:
        self._routes[-1] = route

    def change_active_block(self, active_block: ActiveBlock) -> None:
        self._routes[-1] = self._routes[-1].with_active_block(active_block)

    def frames(self) -> list[Route]:
        return list(self._routes)
