from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional

from core.domain.entities.chamber_entity import ChamberEntity


class ChamberRepositoryInterface(ABC):
    @abstractmethod
    def get_by_address(self, address: str) -> Optional[ChamberEntity]:
        raise NotImplementedError

    @abstractmethod
    def insert(self, entity: ChamberEntity, *, session: Any = None) -> None:
        raise NotImplementedError

    @abstractmethod
    def save(self, entity: ChamberEntity, *, session: Any = None) -> None:
        """
        Replace the stored record for `entity.address`, only if it is still
        the version `entity` was loaded from; StaleRecord otherwise.
        """
        raise NotImplementedError
