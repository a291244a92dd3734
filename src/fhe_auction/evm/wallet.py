"""Wallet adapter, chain guard and session bootstrap."""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from typing import Any, Protocol, cast

from eth_account import Account
from eth_account.signers.local import LocalAccount
from hexbytes import HexBytes
from web3 import HTTPProvider, Web3
from web3.middleware import SignAndSendRawMiddlewareBuilder
from web3.types import RPCEndpoint

from ..config import ChainConfig
from ..constants import UNKNOWN_CHAIN_CODE, USER_REJECTED_CODE
from ..exceptions import ValidationError, WalletRejected, WrongChain
from ..types import WalletSession
from ..utils import error_code, normalise_address

logger = logging.getLogger(__name__)

_REJECTION_PATTERN = re.compile(
    r"user rejected|user denied|rejected by user|action_rejected", re.IGNORECASE
)


class ProviderRpcError(Exception):
    """Error object returned by an EIP-1193 style wallet request."""

    def __init__(self, message: str, code: int | None = None, data: Any | None = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.data = data


class Wallet(Protocol):
    """Signing and simulation surface the submission pipeline depends on."""

    def request_accounts(self) -> list[str]: ...

    def chain_id(self) -> int: ...

    def switch_chain(self, chain_id: int) -> None: ...

    def add_chain(self, params: dict[str, Any]) -> None: ...

    def call(self, tx: dict[str, Any]) -> bytes: ...

    def estimate_gas(self, tx: dict[str, Any]) -> int: ...

    def send_transaction(self, tx: dict[str, Any]) -> str: ...

    def wait_for_receipt(self, tx_hash: str, timeout: float) -> dict[str, Any]: ...

    def deploy(
        self, abi: Sequence[dict[str, Any]], bytecode: str, args: Sequence[Any], sender: str
    ) -> str: ...


def is_user_rejection(exc: BaseException) -> bool:
    if error_code(exc) == USER_REJECTED_CODE:
        return True
    return _REJECTION_PATTERN.search(str(exc)) is not None


class Web3Wallet:
    """Wallet backed by web3.py.

    With ``private_key`` transactions are signed locally through web3's signing
    middleware. Without one, account and chain requests go to the endpoint as
    EIP-1193 JSON-RPC calls, which external signers such as Frame answer.
    """

    def __init__(
        self,
        rpc_url: str,
        *,
        private_key: str | None = None,
        request_timeout: float = 10.0,
        web3: Web3 | None = None,
    ) -> None:
        self._rpc_url = rpc_url
        self._web3 = web3 or Web3(HTTPProvider(rpc_url, request_kwargs={"timeout": request_timeout}))
        self._account: LocalAccount | None = None
        if private_key:
            try:
                signer = cast(LocalAccount, Account.from_key(private_key))
            except Exception as exc:
                raise ValidationError(
                    "Failed to derive signer account from provided private key",
                    field="private_key",
                    details={"error": str(exc)},
                ) from exc
            self._account = signer
            self._web3.middleware_onion.add(SignAndSendRawMiddlewareBuilder.build(signer))  # type: ignore[arg-type]
            self._web3.eth.default_account = signer.address

    @property
    def web3(self) -> Web3:
        return self._web3

    def request_accounts(self) -> list[str]:
        if self._account is not None:
            return [self._account.address]
        accounts = self._request("eth_requestAccounts", [])
        return [str(account) for account in accounts or []]

    def chain_id(self) -> int:
        return int(self._web3.eth.chain_id)

    def switch_chain(self, chain_id: int) -> None:
        if self._account is not None:
            raise ProviderRpcError(
                f"Local signer on {self._rpc_url} cannot switch chains", code=None
            )
        self._request("wallet_switchEthereumChain", [{"chainId": hex(chain_id)}])

    def add_chain(self, params: dict[str, Any]) -> None:
        if self._account is not None:
            raise ProviderRpcError(f"Local signer on {self._rpc_url} cannot add chains", code=None)
        self._request("wallet_addEthereumChain", [params])

    def call(self, tx: dict[str, Any]) -> bytes:
        return bytes(self._web3.eth.call(cast(Any, tx)))

    def estimate_gas(self, tx: dict[str, Any]) -> int:
        return int(self._web3.eth.estimate_gas(cast(Any, tx)))

    def send_transaction(self, tx: dict[str, Any]) -> str:
        return HexBytes(self._web3.eth.send_transaction(cast(Any, tx))).to_0x_hex()

    def wait_for_receipt(self, tx_hash: str, timeout: float) -> dict[str, Any]:
        receipt = self._web3.eth.wait_for_transaction_receipt(cast(Any, tx_hash), timeout=timeout)
        return dict(receipt)

    def deploy(
        self, abi: Sequence[dict[str, Any]], bytecode: str, args: Sequence[Any], sender: str
    ) -> str:
        factory = self._web3.eth.contract(abi=list(abi), bytecode=bytecode)
        tx_hash = factory.constructor(*args).transact({"from": sender})
        return HexBytes(tx_hash).to_0x_hex()

    def _request(self, method: str, params: list[Any]) -> Any:
        response = self._web3.provider.make_request(RPCEndpoint(method), params)
        error = response.get("error") if isinstance(response, dict) else None
        if error:
            if isinstance(error, dict):
                raise ProviderRpcError(
                    str(error.get("message", method)), code=error.get("code"), data=error.get("data")
                )
            raise ProviderRpcError(str(error))
        return response.get("result")


def ensure_chain(wallet: Wallet, chain: ChainConfig) -> int:
    """Make sure ``wallet`` targets ``chain``; switch (adding the chain if unknown) otherwise."""

    current = wallet.chain_id()
    if current == chain.chain_id:
        return current

    logger.info("Wallet on chain %s, switching to %s (%s)", current, chain.chain_id, chain.name)
    try:
        wallet.switch_chain(chain.chain_id)
    except Exception as exc:
        if is_user_rejection(exc):
            raise WalletRejected("Chain switch rejected in wallet") from exc
        if error_code(exc) != UNKNOWN_CHAIN_CODE:
            raise WrongChain(
                f"Wallet is on chain {current}, expected {chain.chain_id}",
                expected=chain.chain_id,
                actual=current,
            ) from exc
        logger.info("Chain %s unknown to wallet, adding it", chain.chain_id)
        try:
            wallet.add_chain(chain.add_chain_params())
            wallet.switch_chain(chain.chain_id)
        except Exception as add_exc:
            if is_user_rejection(add_exc):
                raise WalletRejected("Adding the chain was rejected in wallet") from add_exc
            raise WrongChain(
                f"Unable to add chain {chain.chain_id} to wallet",
                expected=chain.chain_id,
                actual=current,
            ) from add_exc

    current = wallet.chain_id()
    if current != chain.chain_id:
        raise WrongChain(
            f"Wallet is on chain {current}, expected {chain.chain_id}",
            expected=chain.chain_id,
            actual=current,
        )
    return current


def connect_wallet(wallet: Wallet, chain: ChainConfig) -> WalletSession:
    """Select the target chain, then ask for account access."""

    ensure_chain(wallet, chain)
    try:
        accounts = wallet.request_accounts()
    except Exception as exc:
        if is_user_rejection(exc):
            raise WalletRejected("Account access rejected in wallet") from exc
        raise
    if not accounts:
        raise WalletRejected("Wallet did not authorise any account")

    session = WalletSession(
        address=normalise_address(accounts[0], field="account"), chain_id=wallet.chain_id()
    )
    logger.info("Connected %s on chain %s", session.address, session.chain_id)
    return session
