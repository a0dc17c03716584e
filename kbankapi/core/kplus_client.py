import asyncio
import copy
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Protocol

import httpx
import jwt
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from .data_models import BankInfo, TransferHandle

logger = logging.getLogger(__name__)
DEFAULT_TIMEOUT = httpx.Timeout(20.0, connect=5.0)

# Transport failures worth another attempt on idempotent reads
RETRYABLE_EXCEPTIONS = (
    httpx.TimeoutException,
    httpx.ConnectError,
    httpx.NetworkError,
)


def _is_retryable(exc: BaseException) -> bool:
    """Retry only on transport errors and HTTP 5xx."""
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500
    return isinstance(exc, RETRYABLE_EXCEPTIONS)


api_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=5),
    retry=retry_if_exception(_is_retryable),
    reraise=True,
)


class KPlusAPIError(Exception):
    """The banking backend rejected a request."""

    def __init__(self, message: str, code: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.code = code
        self.status_code = status_code


class AuthenticatedClient(Protocol):
    """Surface of the banking client the session coordinator relies on."""

    def export_state(self) -> Dict[str, Any]: ...

    async def get_inquiry_account_balance(self, account_no: str, account_type: str) -> Dict[str, Any]: ...

    async def get_account_activity_list(self, account_no: str) -> Dict[str, Any]: ...

    async def get_account_activity_detail(self, account_no: str, activity: Dict[str, Any]) -> Dict[str, Any]: ...

    async def get_bank_info_list(self) -> List[BankInfo]: ...

    async def inquire_for_transfer_money(
        self,
        handle: TransferHandle,
        from_account: str,
        to_account: str,
        amount: float,
        transfer_type: str,
        target_bank_code: str,
    ) -> Dict[str, Any]: ...

    async def transfer_money(self, handle: TransferHandle) -> Dict[str, Any]: ...

    async def scan_qr(self, payload: str) -> Dict[str, Any]: ...

    async def close(self) -> None: ...


class KPlusClient:
    """Authenticated K PLUS session bound to one device registration.

    The durable state (device id and tokens) is held as a plain dict so the
    owner can snapshot it with :meth:`export_state` and persist it between runs.
    """

    def __init__(
        self,
        api_base_url: str,
        pin: str,
        state: Optional[Dict[str, Any]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not api_base_url or not pin:
            raise ValueError("api_base_url and pin are required.")

        self.api_base_url = api_base_url.rstrip("/")
        self._pin = pin
        self._state: Dict[str, Any] = copy.deepcopy(state or {})
        self._client = httpx.AsyncClient(base_url=self.api_base_url, timeout=DEFAULT_TIMEOUT, transport=transport)
        self._token_lock = asyncio.Lock()

    def export_state(self) -> Dict[str, Any]:
        return copy.deepcopy(self._state)

    @property
    def device_id(self) -> str:
        if not self._state.get("deviceId"):
            self._state["deviceId"] = str(uuid.uuid4())
            logger.info("Registered new device id %s", self._state["deviceId"])
        return self._state["deviceId"]

    def _headers(self, access_token: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "X-Device-Id": self.device_id,
            "X-Request-Id": str(uuid.uuid4()),
        }
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        return headers

    def _token_is_fresh(self) -> bool:
        token = self._state.get("accessToken")
        if not token:
            return False
        try:
            payload = jwt.decode(token, options={"verify_signature": False})
        except jwt.DecodeError:
            # Opaque tokens carry no expiry; trust them until the backend answers 401.
            return True
        exp = payload.get("exp")
        if not exp:
            return True
        expires_at = datetime.fromtimestamp(exp, tz=timezone.utc) - timedelta(minutes=1)
        return datetime.now(timezone.utc) < expires_at

    @staticmethod
    def _raise_for_error(response: httpx.Response) -> Any:
        if response.status_code >= 500:
            response.raise_for_status()
        try:
            body = response.json()
        except ValueError:
            body = None

        if response.status_code >= 400:
            message = None
            code = None
            if isinstance(body, dict):
                message = body.get("errorMessage") or body.get("message") or body.get("error")
                code = body.get("errorCode")
            raise KPlusAPIError(message or f"HTTP {response.status_code}", code=code, status_code=response.status_code)

        if isinstance(body, dict) and body.get("errorCode") and body.get("errorCode") != "0000":
            raise KPlusAPIError(body.get("errorMessage") or body["errorCode"], code=body["errorCode"])
        return body

    @api_retry
    async def _login(self) -> None:
        logger.info("Logging in device %s at %s", self.device_id, self.api_base_url)
        response = await self._client.post(
            "/authentication/login",
            headers=self._headers(),
            json={"deviceId": self.device_id, "pin": self._pin},
        )
        data = self._raise_for_error(response)
        self._store_tokens(data)

    async def _refresh(self) -> bool:
        refresh_token = self._state.get("refreshToken")
        if not refresh_token:
            return False
        response = await self._client.post(
            "/authentication/refresh",
            headers=self._headers(),
            json={"deviceId": self.device_id, "refreshToken": refresh_token},
        )
        try:
            data = self._raise_for_error(response)
        except KPlusAPIError as exc:
            logger.warning("Token refresh rejected (%s); falling back to PIN login", exc)
            self._state.pop("refreshToken", None)
            return False
        self._store_tokens(data)
        return True

    def _store_tokens(self, data: Any) -> None:
        if not isinstance(data, dict) or not data.get("accessToken"):
            raise KPlusAPIError("Authentication response did not contain an access token.")
        self._state["accessToken"] = data["accessToken"]
        if data.get("refreshToken"):
            self._state["refreshToken"] = data["refreshToken"]

    async def _get_access_token(self, force: bool = False) -> str:
        async with self._token_lock:
            if not force and self._token_is_fresh():
                return self._state["accessToken"]

            self._state.pop("accessToken", None)
            if not await self._refresh():
                await self._login()
            logger.info("Obtained new access token for device %s", self.device_id)
            return self._state["accessToken"]

    async def _post(self, url: str, body: Optional[Dict[str, Any]] = None) -> Any:
        """Authenticated POST that re-authenticates once when the token is rejected."""
        token = await self._get_access_token()
        response = await self._client.post(url, headers=self._headers(token), json=body or {})
        if response.status_code == 401:
            logger.info("Access token rejected for %s, re-authenticating", url)
            token = await self._get_access_token(force=True)
            response = await self._client.post(url, headers=self._headers(token), json=body or {})
        return self._raise_for_error(response)

    @api_retry
    async def get_inquiry_account_balance(self, account_no: str, account_type: str) -> Dict[str, Any]:
        return await self._post("/accounts/balance", {"accountNo": account_no, "accountType": account_type})

    @api_retry
    async def get_account_activity_list(self, account_no: str) -> Dict[str, Any]:
        return await self._post("/accounts/activities", {"accountNo": account_no})

    @api_retry
    async def get_account_activity_detail(self, account_no: str, activity: Dict[str, Any]) -> Dict[str, Any]:
        return await self._post(
            "/accounts/activities/detail",
            {"accountNo": account_no, "rqUid": activity.get("rqUid"), "activity": activity},
        )

    @api_retry
    async def get_bank_info_list(self) -> List[BankInfo]:
        data = await self._post("/transfers/banks")
        entries = data.get("bankInfoList", []) if isinstance(data, dict) else data or []
        banks = []
        for entry in entries:
            try:
                banks.append(BankInfo.model_validate(entry))
            except ValueError as exc:
                logger.warning("Skipping malformed bank info entry %s: %s", entry, exc)
        return banks

    async def inquire_for_transfer_money(
        self,
        handle: TransferHandle,
        from_account: str,
        to_account: str,
        amount: float,
        transfer_type: str,
        target_bank_code: str,
    ) -> Dict[str, Any]:
        """Ask the backend to price and validate a transfer, filling ``handle`` for confirmation."""
        body = {
            "fromAccountNo": from_account,
            "toAccountNo": to_account,
            "amount": amount,
            "transferType": transfer_type,
            "targetBankCode": target_bank_code,
        }
        data = await self._post("/transfers/inquiry", body)
        if not isinstance(data, dict) or not data.get("kbankInternalSessionId"):
            raise KPlusAPIError("Transfer inquiry did not return kbankInternalSessionId.")

        handle.kbankInternalSessionId = data["kbankInternalSessionId"]
        handle.fromAccountNo = from_account
        handle.toAccountNo = to_account
        handle.amount = amount
        handle.transferType = transfer_type
        handle.targetBankCode = target_bank_code
        handle.inquiry = data
        logger.info("Transfer inquiry accepted (kbankInternalSessionId=%s)", handle.kbankInternalSessionId)
        return data

    # Never retried; a transfer is not idempotent.
    async def transfer_money(self, handle: TransferHandle) -> Dict[str, Any]:
        if not handle.kbankInternalSessionId:
            raise KPlusAPIError("Transfer handle has not been inquired.")
        body = {
            "kbankInternalSessionId": handle.kbankInternalSessionId,
            "fromAccountNo": handle.fromAccountNo,
            "toAccountNo": handle.toAccountNo,
            "amount": handle.amount,
            "transferType": handle.transferType,
            "targetBankCode": handle.targetBankCode,
            "inquiry": handle.inquiry,
        }
        logger.info("Executing transfer %s", handle.kbankInternalSessionId)
        return await self._post("/transfers/confirm", body)

    async def scan_qr(self, payload: str) -> Dict[str, Any]:
        return await self._post("/qr/scan", {"qrCode": payload})

    async def close(self) -> None:
        """Dispose the underlying HTTP client."""
        await self._client.aclose()
