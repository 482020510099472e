"""Polymarket Relayer API client for gasless Safe operations."""

import asyncio
import base64
import hashlib
import hmac
import json
import logging
import time
from typing import Any, Dict, Optional

import httpx
from eth_utils import to_checksum_address

from config import settings
from .exceptions import (
    RelayRequestError,
    RelayResponseError,
    RelayUnavailableError,
    StaleNonceError,
    SubmissionUncertainError,
)
from .models import RelayTransactionRecord, SignedWalletTransaction

logger = logging.getLogger(__name__)

# Retry settings for idempotent relayer reads
RELAY_INITIAL_DELAY = 1.0  # seconds

SAFE_TX_TYPE = "SAFE"
SAFE_CREATE_TX_TYPE = "SAFE-CREATE"


class RelayerClient:
    """
    Client for the Polymarket Relayer API.

    Endpoints:
    - POST /deploy       gasless Safe deployment
    - GET  /nonce        next Safe nonce for a signer
    - GET  /deployed     Safe deployment status
    - POST /execute      signed Safe transaction submission
    - GET  /transaction  relayer transaction status

    Reads are retried on transport errors and 5xx responses. Submissions are
    never retried here; the caller decides, because a retry after the
    relayer accepted a payload would consume a second nonce.
    """

    def __init__(
        self,
        host: Optional[str] = None,
        api_key: Optional[str] = None,
        api_secret: Optional[str] = None,
        api_passphrase: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.host = (host or settings.relayer_host).rstrip("/")
        self.api_key = settings.poly_builder_api_key if api_key is None else api_key
        self.api_secret = settings.poly_builder_secret if api_secret is None else api_secret
        self.api_passphrase = (
            settings.poly_builder_passphrase if api_passphrase is None else api_passphrase
        )
        self.timeout = settings.relay_request_timeout if timeout is None else timeout
        self.max_retries = settings.relay_max_retries if max_retries is None else max_retries
        if self.max_retries < 1:
            raise ValueError(f"max_retries counts attempts and must be at least 1, got {self.max_retries}")
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> "RelayerClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def _get_secret_bytes(self) -> bytes:
        """
        Get the API secret as bytes.

        The secret is base64 URL-safe encoded (same format as py-clob-client).
        """
        try:
            return base64.urlsafe_b64decode(self.api_secret)
        except ValueError:
            return self.api_secret.encode("utf-8")

    def _sign_request(
        self,
        method: str,
        path: str,
        timestamp: str,
        body: str = "",
    ) -> str:
        """
        Generate HMAC-SHA256 signature for relayer request.

        Args:
            method: HTTP method (GET, POST, etc.)
            path: Request path
            timestamp: Unix timestamp string
            body: Request body as string

        Returns:
            URL-safe Base64-encoded signature
        """
        message = timestamp + method.upper() + path + body
        signature = hmac.new(
            self._get_secret_bytes(),
            message.encode("utf-8"),
            hashlib.sha256,
        )
        return base64.urlsafe_b64encode(signature.digest()).decode("utf-8")

    def _get_headers(
        self,
        method: str,
        path: str,
        body: str = "",
    ) -> Dict[str, str]:
        """
        Build headers for relayer request.

        Builder headers (POLY_BUILDER_*) are added only when credentials
        are configured.
        """
        headers = {"Content-Type": "application/json"}
        if not self.is_configured():
            return headers

        timestamp = str(int(time.time()))
        headers.update({
            "POLY_BUILDER_API_KEY": self.api_key,
            "POLY_BUILDER_PASSPHRASE": self.api_passphrase,
            "POLY_BUILDER_SIGNATURE": self._sign_request(method, path, timestamp, body),
            "POLY_BUILDER_TIMESTAMP": timestamp,
        })
        return headers

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create async HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
            self._owns_client = True
        return self._client

    async def close(self):
        """Close HTTP client."""
        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None

    def is_configured(self) -> bool:
        """Check if relayer credentials are configured."""
        return bool(
            self.api_key
            and self.api_secret
            and self.api_passphrase
        )

    async def _request(
        self,
        method: str,
        path: str,
        stage: str,
        params: Optional[Dict[str, str]] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Send one request and return the decoded JSON body."""
        body_str = json.dumps(body) if body is not None else ""
        client = await self._get_client()
        headers = self._get_headers(method, path, body_str)

        # A failed POST may still have been accepted upstream
        unavailable_class = SubmissionUncertainError if method.upper() == "POST" else RelayUnavailableError

        logger.debug(f"Relayer {method} {self.host}{path} params={params}")
        try:
            response = await client.request(
                method,
                f"{self.host}{path}",
                params=params,
                headers=headers,
                content=body_str or None,
            )
        except httpx.HTTPError as e:
            raise unavailable_class(f"Relayer unreachable: {e}", stage=stage) from e

        if response.status_code >= 500:
            raise unavailable_class(
                f"Relayer error: {response.status_code} - {response.text}", stage=stage
            )
        if response.status_code >= 400:
            error_text = response.text
            error_class = StaleNonceError if "nonce" in error_text.lower() else RelayRequestError
            raise error_class(
                f"Relayer rejected request: {response.status_code} - {error_text}",
                status_code=response.status_code,
                stage=stage,
            )

        try:
            return response.json()
        except ValueError as e:
            raise RelayResponseError(
                f"Relayer returned invalid JSON: {response.text[:200]}", stage=stage
            ) from e

    async def _get_with_retry(
        self,
        path: str,
        stage: str,
        params: Dict[str, str],
    ) -> Any:
        """GET with exponential backoff on RelayUnavailableError."""
        delay = RELAY_INITIAL_DELAY

        for attempt in range(self.max_retries):
            try:
                return await self._request("GET", path, stage, params=params)
            except RelayUnavailableError as e:
                if attempt >= self.max_retries - 1:
                    raise
                logger.warning(
                    f"{path} unavailable, retrying in {delay}s "
                    f"(attempt {attempt + 1}/{self.max_retries}): {e.message}"
                )
                await asyncio.sleep(delay)
                delay *= 2  # Exponential backoff

    @staticmethod
    def _extract_transaction_id(result: Any, stage: str) -> str:
        transaction_id = None
        if isinstance(result, dict):
            transaction_id = result.get("transactionID") or result.get("id")
        if not transaction_id:
            raise RelayResponseError(f"Relayer response has no transaction id: {result}", stage=stage)
        return str(transaction_id)

    async def get_nonce(self, address: str, tx_type: str = SAFE_TX_TYPE) -> str:
        """
        Get the next Safe nonce for a signer.

        Returns:
            Nonce as the relayer's decimal string
        """
        result = await self._get_with_retry(
            "/nonce",
            stage="nonce",
            params={"address": to_checksum_address(address), "type": tx_type},
        )
        nonce = result.get("nonce") if isinstance(result, dict) else None
        if nonce is None or not str(nonce).isdigit():
            raise RelayResponseError(f"Relayer returned invalid nonce: {result}", stage="nonce")
        return str(nonce)

    async def is_deployed(self, safe_address: str) -> bool:
        """Check if a Safe wallet is already deployed, according to the relayer."""
        result = await self._get_with_retry(
            "/deployed",
            stage="checking",
            params={"address": to_checksum_address(safe_address)},
        )
        if not isinstance(result, dict) or "deployed" not in result:
            raise RelayResponseError(f"Unexpected /deployed response: {result}", stage="checking")
        return bool(result["deployed"])

    async def deploy(
        self,
        owner_address: str,
        signature: str,
        safe_address: str,
        factory_address: str,
    ) -> str:
        """
        Submit a signed CreateProxy request.

        Returns:
            Relayer transaction id
        """
        body = {
            "type": SAFE_CREATE_TX_TYPE,
            "eoaAddress": to_checksum_address(owner_address),
            "signature": signature,
            "proxyAddress": to_checksum_address(safe_address),
            "safeFactoryAddress": to_checksum_address(factory_address),
        }

        logger.info(f"Deploying Safe {safe_address[:10]}... via relayer for EOA {owner_address[:10]}...")
        result = await self._request("POST", "/deploy", stage="submitting", body=body)
        transaction_id = self._extract_transaction_id(result, stage="submitting")
        logger.info(f"Safe deployment submitted: {transaction_id}")
        return transaction_id

    async def execute(self, signed: SignedWalletTransaction, metadata: str = "") -> str:
        """
        Submit a signed Safe transaction.

        Returns:
            Relayer transaction id
        """
        tx = signed.transaction
        body = {
            "type": SAFE_TX_TYPE,
            "from": signed.owner_address,
            "to": to_checksum_address(tx.to),
            "proxyWallet": signed.wallet_address,
            "data": tx.data,
            "nonce": str(tx.nonce),
            "signature": signed.signature,
            "signatureParams": tx.signature_params(),
            "metadata": metadata,
        }

        logger.info(
            f"Submitting Safe transaction: {signed.wallet_address[:10]}... -> {tx.to[:10]}... "
            f"(nonce={tx.nonce}, operation={int(tx.operation)})"
        )
        result = await self._request("POST", "/execute", stage="submitting", body=body)
        transaction_id = self._extract_transaction_id(result, stage="submitting")
        logger.info(f"Safe transaction submitted: {transaction_id}")
        return transaction_id

    async def get_transaction(self, transaction_id: str) -> RelayTransactionRecord:
        """Get the relayer's current view of a transaction."""
        result = await self._get_with_retry(
            "/transaction",
            stage="polling",
            params={"id": transaction_id},
        )
        # The relayer answers with a list of matches or a single object
        if isinstance(result, list):
            if not result:
                return RelayTransactionRecord(transaction_id=transaction_id)
            result = result[0]
        if not isinstance(result, dict):
            raise RelayResponseError(
                f"Unexpected /transaction response: {result}",
                stage="polling",
                transaction_id=transaction_id,
            )
        return RelayTransactionRecord.from_api(transaction_id, result)
