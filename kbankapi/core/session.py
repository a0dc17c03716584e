"""Session coordinator owning the single authenticated K PLUS connection.

Every authenticated operation runs through :meth:`Session.call`, which holds
an exclusive gate for the duration of the operation. The backend session is
stateful and not reentrant, so two operations must never interleave.

After each call the client's durable state is compared with the last known
snapshot; when it differs the new snapshot is handed to the registered
observers (normally :meth:`StateStore.notify`), which must not block.
"""
from __future__ import annotations

import asyncio
import copy
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

from cachetools import TTLCache

from .correlation import CorrelationTable
from .data_models import TransferHandle
from .kplus_client import AuthenticatedClient

logger = logging.getLogger(__name__)

T = TypeVar("T")
Operation = Callable[[AuthenticatedClient], Awaitable[T]]
StateObserver = Callable[[Dict[str, Any]], None]

_BANK_INFO_KEY = "bank_info"


class SessionBusyError(RuntimeError):
    """The execution gate could not be acquired in time."""


class SessionTimeoutError(RuntimeError):
    """An operation held the execution gate longer than allowed."""


class UnknownBankCodeError(LookupError):
    """The destination bank code is not in the bank info table."""

    def __init__(self, bank_code: str):
        super().__init__(bank_code)
        self.bank_code = bank_code


class Session:
    """One account on one authenticated client. The PIN stays with the client, which alone logs in."""

    def __init__(
        self,
        client: AuthenticatedClient,
        account_number: str,
        account_type: str,
        *,
        bank_info_ttl: float = 0,
        acquire_timeout: Optional[float] = None,
        call_timeout: Optional[float] = None,
        activity_table_size: Optional[int] = None,
        transfer_table_size: Optional[int] = None,
    ):
        self.account_number = account_number
        self.account_type = account_type
        self._client = client
        self._state: Dict[str, Any] = client.export_state()
        self._observers: List[StateObserver] = []
        self._lock = asyncio.Lock()
        self._acquire_timeout = acquire_timeout
        self._call_timeout = call_timeout
        self._bank_info_cache: Optional[TTLCache] = (
            TTLCache(maxsize=1, ttl=bank_info_ttl) if bank_info_ttl and bank_info_ttl > 0 else None
        )
        self.activities: CorrelationTable[Dict[str, Any]] = CorrelationTable("activities", activity_table_size)
        self.transfers: CorrelationTable[TransferHandle] = CorrelationTable("transfers", transfer_table_size)

    @property
    def state(self) -> Dict[str, Any]:
        """Last durable state snapshot observed after a call."""
        return copy.deepcopy(self._state)

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def add_state_observer(self, observer: StateObserver) -> None:
        self._observers.append(observer)

    async def _acquire(self) -> None:
        if self._acquire_timeout is None:
            await self._lock.acquire()
            return
        try:
            await asyncio.wait_for(self._lock.acquire(), self._acquire_timeout)
        except asyncio.TimeoutError as exc:
            raise SessionBusyError(
                f"Banking session is busy; gave up after {self._acquire_timeout:g}s"
            ) from exc

    async def _execute(self, operation: Operation[T]) -> T:
        if self._call_timeout is None:
            return await operation(self._client)
        try:
            return await asyncio.wait_for(operation(self._client), self._call_timeout)
        except asyncio.TimeoutError as exc:
            raise SessionTimeoutError(
                f"Banking operation did not finish within {self._call_timeout:g}s"
            ) from exc

    def _publish_state(self) -> None:
        current = self._client.export_state()
        if current == self._state:
            return
        self._state = current
        logger.info("Session state changed, notifying %d observer(s)", len(self._observers))
        for observer in self._observers:
            try:
                observer(copy.deepcopy(current))
            except Exception:  # noqa: BLE001
                logger.exception("State observer %r failed", observer)

    async def call(self, operation: Operation[T]) -> T:
        """Run ``operation`` with exclusive use of the client.

        The result or exception of ``operation`` is passed through untouched.
        """
        await self._acquire()
        try:
            return await self._execute(operation)
        finally:
            try:
                self._publish_state()
            finally:
                self._lock.release()

    async def fetch_bank_info(self, client: AuthenticatedClient) -> Dict[str, Dict[str, Any]]:
        """Bank code -> transfer metadata, using a client already held by the caller."""
        if self._bank_info_cache is not None:
            cached = self._bank_info_cache.get(_BANK_INFO_KEY)
            if cached is not None:
                return copy.deepcopy(cached)

        banks = await client.get_bank_info_list()
        table = {bank.bankCode: bank.model_dump(exclude_none=True) for bank in banks}
        if self._bank_info_cache is not None:
            self._bank_info_cache[_BANK_INFO_KEY] = copy.deepcopy(table)
        return table

    async def get_bank_info_list(self) -> Dict[str, Dict[str, Any]]:
        if self._bank_info_cache is not None:
            cached = self._bank_info_cache.get(_BANK_INFO_KEY)
            if cached is not None:
                return copy.deepcopy(cached)
        return await self.call(self.fetch_bank_info)

    async def get_balance(self) -> Dict[str, Any]:
        return await self.call(
            lambda client: client.get_inquiry_account_balance(self.account_number, self.account_type)
        )

    async def list_activities(self) -> Dict[str, Any]:
        async def _list(client: AuthenticatedClient) -> Dict[str, Any]:
            response = await client.get_account_activity_list(self.account_number)
            for activity in (response or {}).get("activityList") or []:
                rq_uid = activity.get("rqUid")
                if rq_uid:
                    self.activities.register(rq_uid, activity)
            return response

        return await self.call(_list)

    async def get_activity_detail(self, rq_uid: str) -> Dict[str, Any]:
        activity = self.activities.resolve(rq_uid)
        return await self.call(
            lambda client: client.get_account_activity_detail(self.account_number, activity)
        )

    async def inquire_transfer(self, to_account: str, amount: float, to_bank_code: str) -> Dict[str, Any]:
        async def _inquire(client: AuthenticatedClient) -> Dict[str, Any]:
            bank_info = (await self.fetch_bank_info(client)).get(to_bank_code)
            if bank_info is None:
                raise UnknownBankCodeError(to_bank_code)

            handle = TransferHandle()
            response = await client.inquire_for_transfer_money(
                handle,
                self.account_number,
                to_account,
                amount,
                bank_info["transferType"],
                bank_info["targetBankCode"],
            )
            self.transfers.register(response["kbankInternalSessionId"], handle)
            return response

        return await self.call(_inquire)

    async def confirm_transfer(self, kbank_internal_session_id: str) -> Dict[str, Any]:
        handle = self.transfers.resolve(kbank_internal_session_id)
        return await self.call(lambda client: client.transfer_money(handle))

    async def scan_qr(self, payload: str) -> Dict[str, Any]:
        return await self.call(lambda client: client.scan_qr(payload))

    async def close(self) -> None:
        await self._client.close()
