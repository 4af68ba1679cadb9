from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence

from core.domain.entities.user_account_entity import UserAccountEntity
from core.domain.enums.chamber_enums import UserAccountStatus


class UserAccountRepositoryInterface(ABC):
    @abstractmethod
    def get(self, *, chamber: str, user: str) -> Optional[UserAccountEntity]:
        raise NotImplementedError

    @abstractmethod
    def insert(self, entity: UserAccountEntity, *, session: Any = None) -> None:
        """
        UserAccountAlreadyExists when (chamber, user) is taken.
        """
        raise NotImplementedError

    @abstractmethod
    def save(self, entity: UserAccountEntity, *, expected_status: UserAccountStatus, session: Any = None) -> None:
        """
        Replace the stored record, only if it is still in `expected_status`
        at the version `entity` was loaded from; StaleRecord otherwise.
        """
        raise NotImplementedError

    @abstractmethod
    def list_by_chamber(self, chamber: str, *, limit: int = 100) -> Sequence[UserAccountEntity]:
        raise NotImplementedError

    @abstractmethod
    def list_in_flight(self, chamber: str, *, limit: int = 10) -> Sequence[UserAccountEntity]:
        """
        Accounts of `chamber` parked between deposit stages.
        """
        raise NotImplementedError
