"""Read-only contract access with failover across redundant RPC endpoints."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Any, TypeVar

from eth_abi.exceptions import DecodingError
from web3 import HTTPProvider, Web3
from web3.exceptions import BadFunctionCallOutput, ContractLogicError

from ..abi import FHEAuction_abi
from ..exceptions import AllEndpointsUnavailable, IncompatibleContract, ValidationError
from ..types import ReadCall
from ..utils import normalise_address

logger = logging.getLogger(__name__)

T = TypeVar("T")

# The endpoint answered, but the address does not speak the expected ABI
CONTRACT_LEVEL_ERRORS: tuple[type[BaseException], ...] = (
    BadFunctionCallOutput,
    ContractLogicError,
    DecodingError,
)


def default_web3_factory(url: str, *, request_timeout: float) -> Web3:
    return Web3(HTTPProvider(url, request_kwargs={"timeout": request_timeout}))


class MultiEndpointReader:
    """Issue reads against a fixed priority list of endpoints, moving on after any failure.

    Endpoint diversity is the retry strategy: each endpoint is tried once per read.
    """

    def __init__(
        self,
        endpoints: Sequence[str],
        *,
        abi: Sequence[dict[str, Any]] = FHEAuction_abi,
        request_timeout: float = 10.0,
        web3_factory: Callable[[str], Web3] | None = None,
    ) -> None:
        if not endpoints:
            raise ValidationError("At least one RPC endpoint is required", field="endpoints")
        self._endpoints = tuple(endpoints)
        self._abi = list(abi)
        self._request_timeout = request_timeout
        self._factory = web3_factory or (
            lambda url: default_web3_factory(url, request_timeout=request_timeout)
        )
        self._web3: dict[str, Web3] = {url: self._factory(url) for url in self._endpoints}

    @property
    def endpoints(self) -> tuple[str, ...]:
        return self._endpoints

    @property
    def abi(self) -> list[dict[str, Any]]:
        return self._abi

    def web3_for(self, endpoint: str) -> Web3:
        try:
            return self._web3[endpoint]
        except KeyError:
            raise ValidationError(
                f"Unknown RPC endpoint {endpoint}", field="endpoint", value=endpoint
            ) from None

    def execute(self, fn: Callable[[Web3], T], *, label: str = "read") -> T:
        """Run ``fn`` against each endpoint in order until one succeeds."""

        errors: dict[str, str] = {}
        contract_errors: dict[str, str] = {}
        for endpoint in self._endpoints:
            try:
                result = fn(self.web3_for(endpoint))
            except CONTRACT_LEVEL_ERRORS as exc:
                logger.debug("%s answered %s with a contract error: %s", endpoint, label, exc)
                contract_errors[endpoint] = str(exc) or exc.__class__.__name__
                errors[endpoint] = contract_errors[endpoint]
                continue
            except Exception as exc:
                logger.debug("%s failed for %s: %s", endpoint, label, exc)
                errors[endpoint] = str(exc) or exc.__class__.__name__
                continue

            if errors:
                logger.info("%s succeeded on fallback endpoint %s", label, endpoint)
            return result

        if contract_errors:
            raise IncompatibleContract(
                f"Contract call {label} failed on every endpoint",
                details={"errors": errors},
            )
        logger.warning("All %d endpoints failed for %s", len(self._endpoints), label)
        raise AllEndpointsUnavailable(f"All RPC endpoints failed for {label}", errors=errors)

    def read(self, address: str, call: ReadCall) -> Any:
        """Call a view function on ``address`` and return the decoded result."""

        target = normalise_address(address)
        label = f"{call.function}@{target}"

        def _call(web3: Web3) -> Any:
            contract = web3.eth.contract(address=target, abi=self._abi)
            return getattr(contract.functions, call.function)(*call.args).call()

        try:
            return self.execute(_call, label=label)
        except IncompatibleContract as exc:
            raise IncompatibleContract(exc.message, address=target, details=exc.details) from exc

    def block_number(self) -> int:
        return int(self.execute(lambda web3: web3.eth.block_number, label="block_number"))

    def get_logs(self, params: dict[str, Any]) -> list[Any]:
        return list(self.execute(lambda web3: web3.eth.get_logs(params), label="get_logs"))
