"""
Account Catalog Adapter.

The engine reads accounts through ``AccountCatalog`` and never writes to
it.  ``MappingAccountCatalog`` is an in-memory implementation for hosts
that already hold their chart of accounts, and for tests.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class AccountInfo:
    """What a budget line snapshots from the catalog."""
    account_id: str
    code: str
    name: str
    type: str
    sub_type: str | None = None


@runtime_checkable
class AccountCatalog(Protocol):
    """Resolves an account id to its code, name, type and sub-type."""

    def get_account(self, account_id: str) -> AccountInfo | None:
        """Return the account, or None if the id does not resolve."""
        ...


class MappingAccountCatalog:
    """AccountCatalog backed by a dict of account id -> AccountInfo."""

    def __init__(self, accounts: Mapping[str, AccountInfo] | Iterable[AccountInfo] = ()):
        if isinstance(accounts, Mapping):
            self._accounts = dict(accounts)
        else:
            self._accounts = {a.account_id: a for a in accounts}

    def get_account(self, account_id: str) -> AccountInfo | None:
        return self._accounts.get(account_id)

    def register(self, account: AccountInfo) -> None:
        self._accounts[account.account_id] = account

    def __len__(self) -> int:
        return len(self._accounts)
