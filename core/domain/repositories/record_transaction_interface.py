from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Any


class RecordTransactionInterface(ABC):
    """
    Scope in which the chamber and user-account writes of one request
    commit together or not at all.

    The context yields a session handle to pass to the repositories' `save`.
    An exception escaping the scope discards every write made with it.
    """

    @abstractmethod
    def transaction(self) -> AbstractContextManager[Any]:
        raise NotImplementedError
