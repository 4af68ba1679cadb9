from .chamber_repository_interface import ChamberRepositoryInterface
from .record_transaction_interface import RecordTransactionInterface
from .user_account_repository_interface import UserAccountRepositoryInterface

__all__ = [
    "ChamberRepositoryInterface",
    "RecordTransactionInterface",
    "UserAccountRepositoryInterface",
]
