"""Core package exposing the banking client and the session coordinator."""

from .correlation import CorrelationNotFound, CorrelationTable
from .data_models import BankInfo, TransferHandle
from .kplus_client import AuthenticatedClient, KPlusAPIError, KPlusClient
from .session import Session, SessionBusyError, SessionTimeoutError, UnknownBankCodeError
from .state_store import StateStore, StateStoreError

__all__ = [
    "AuthenticatedClient",
    "BankInfo",
    "CorrelationNotFound",
    "CorrelationTable",
    "KPlusAPIError",
    "KPlusClient",
    "Session",
    "SessionBusyError",
    "SessionTimeoutError",
    "StateStore",
    "StateStoreError",
    "TransferHandle",
    "UnknownBankCodeError",
]
