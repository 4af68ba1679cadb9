from __future__ import annotations

from abc import ABC, abstractmethod


class TokenLedgerInterface(ABC):
    """
    Token primitives with ordinary debit/credit semantics.

    Debiting more than an account holds raises InsufficientFunds. Token
    accounts have an owner and a mint; addresses come back lower-cased.
    """

    @abstractmethod
    def balance_of(self, account: str) -> int:
        raise NotImplementedError

    @abstractmethod
    def supply(self, mint: str) -> int:
        raise NotImplementedError

    @abstractmethod
    def owner_of(self, account: str) -> str:
        raise NotImplementedError

    @abstractmethod
    def mint_of(self, account: str) -> str:
        raise NotImplementedError

    @abstractmethod
    def transfer(self, *, source: str, destination: str, amount: int, authority: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def mint_to(self, *, mint: str, destination: str, amount: int, authority: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def burn(self, *, mint: str, source: str, amount: int, owner: str) -> None:
        raise NotImplementedError
