"""Shared fixtures for the kbankapi test suite.

FakeKPlusClient stands in for the real K PLUS client: it records every call,
tracks how many operations are in flight at once and lets a test mutate the
durable state the way a token refresh would.
"""
from __future__ import annotations

import asyncio
import copy
import json
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional, Tuple

import pytest

from kbankapi.backend.config import Settings
from kbankapi.core.data_models import BankInfo, TransferHandle
from kbankapi.core.session import Session
from kbankapi.core.state_store import StateStore

ACCOUNT_NO = "0011223344"
ACCOUNT_TYPE = "SA"
INITIAL_STATE = {"deviceId": "device-1", "accessToken": "token-1"}

ACTIVITY_LIST = {
    "activityList": [
        {"rqUid": "rq-1", "amount": 120.0, "channel": "K PLUS"},
        {"rqUid": "rq-2", "amount": -45.5, "channel": "ATM"},
    ]
}


class FakeKPlusClient:
    def __init__(self, state: Optional[Dict[str, Any]] = None, delay: float = 0.0):
        self._state = copy.deepcopy(state if state is not None else INITIAL_STATE)
        self.delay = delay
        self.calls: List[Tuple[str, tuple]] = []
        self.active = 0
        self.max_active = 0
        self.fail_with: Optional[BaseException] = None
        self.rotate_token_on_call = False
        self.closed = False
        self.bank_info = [
            BankInfo(bankCode="KBANK", transferType="T1", targetBankCode="004", bankNameEn="KASIKORNBANK"),
            BankInfo(bankCode="SCB", transferType="ORFT", targetBankCode="014"),
        ]
        self.inquiry_response: Dict[str, Any] = {"kbankInternalSessionId": "abc123", "fee": 0.0}
        self.transfer_response: Dict[str, Any] = {"status": "SUCCESS", "transactionRef": "TX-1"}
        self._token_counter = 1

    @property
    def call_names(self) -> List[str]:
        return [name for name, _ in self.calls]

    def export_state(self) -> Dict[str, Any]:
        return copy.deepcopy(self._state)

    def rotate_token(self) -> str:
        self._token_counter += 1
        self._state["accessToken"] = f"token-{self._token_counter}"
        return self._state["accessToken"]

    @asynccontextmanager
    async def _track(self, name: str, *args: Any):
        self.calls.append((name, args))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.rotate_token_on_call:
                self.rotate_token()
            if self.fail_with is not None:
                raise self.fail_with
            yield
        finally:
            self.active -= 1

    async def get_inquiry_account_balance(self, account_no: str, account_type: str) -> Dict[str, Any]:
        async with self._track("balance", account_no, account_type):
            return {"accountNo": account_no, "accountType": account_type, "availableBalance": 1500.25}

    async def get_account_activity_list(self, account_no: str) -> Dict[str, Any]:
        async with self._track("activities", account_no):
            return copy.deepcopy(ACTIVITY_LIST)

    async def get_account_activity_detail(self, account_no: str, activity: Dict[str, Any]) -> Dict[str, Any]:
        async with self._track("activity_detail", account_no, activity):
            return {"rqUid": activity["rqUid"], "memo": "detail"}

    async def get_bank_info_list(self) -> List[BankInfo]:
        async with self._track("bank_info"):
            return list(self.bank_info)

    async def inquire_for_transfer_money(
        self,
        handle: TransferHandle,
        from_account: str,
        to_account: str,
        amount: float,
        transfer_type: str,
        target_bank_code: str,
    ) -> Dict[str, Any]:
        async with self._track(
            "inquire_transfer", handle, from_account, to_account, amount, transfer_type, target_bank_code
        ):
            handle.kbankInternalSessionId = self.inquiry_response.get("kbankInternalSessionId")
            handle.toAccountNo = to_account
            return dict(self.inquiry_response)

    async def transfer_money(self, handle: TransferHandle) -> Dict[str, Any]:
        async with self._track("transfer", handle):
            return dict(self.transfer_response)

    async def scan_qr(self, payload: str) -> Dict[str, Any]:
        async with self._track("scan_qr", payload):
            return {"qrCode": payload, "merchant": "Coffee Shop"}

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_client() -> FakeKPlusClient:
    return FakeKPlusClient()


@pytest.fixture
def session(fake_client: FakeKPlusClient) -> Session:
    return Session(fake_client, ACCOUNT_NO, ACCOUNT_TYPE)


@pytest.fixture
def state_file(tmp_path):
    path = tmp_path / "state.json"
    path.write_text(json.dumps(INITIAL_STATE), encoding="utf-8")
    return path


@pytest.fixture
def state_store(state_file) -> StateStore:
    return StateStore(state_file)


@pytest.fixture
def api_settings(state_file) -> Settings:
    return Settings(
        state_file=state_file,
        account_no=ACCOUNT_NO,
        account_type=ACCOUNT_TYPE,
        pin="123456",
        bank_info_cache_ttl=0,
        session_acquire_timeout=None,
        session_call_timeout=None,
    )
