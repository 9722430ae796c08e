import json
import logging
from typing import Any

import httpx

from ..errors import MetadataFetchError

logger = logging.getLogger(__name__)


class NodeRpcUtility:
    """Utility for reading chain metadata from a Starknet node.

    Issues single JSON-RPC 2.0 requests over HTTP. No retries are
    attempted; failures surface as MetadataFetchError.
    """

    DEFAULT_SPEC_VERSION_METHOD: str = "starknet_specVersion"

    def __init__(
        self,
        rpc_url: str,
        spec_version_method: str = DEFAULT_SPEC_VERSION_METHOD,
        timeout: float = 30.0
    ) -> None:
        """Initialize the node RPC utility.

        Args:
            rpc_url: HTTP(S) JSON-RPC endpoint of the node
            spec_version_method: RPC method returning the spec version
            timeout: Request timeout in seconds
        """
        self.rpc_url: str = rpc_url
        self.spec_version_method: str = spec_version_method
        self.timeout: float = timeout

    async def _rpc_post(self, method: str, params: list[Any]) -> Any:
        """Post a JSON-RPC request to the node.

        Args:
            method: JSON-RPC method name
            params: Positional parameters

        Returns:
            The ``result`` member of the response

        Raises:
            MetadataFetchError: On transport, HTTP, JSON or JSON-RPC errors
        """
        payload: dict[str, Any] = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": method,
            "params": params,
        }

        try:
            async with httpx.AsyncClient() as client:
                logger.debug(f"Posting to {self.rpc_url}: {json.dumps(payload)}")
                response: httpx.Response = await client.post(
                    self.rpc_url, json=payload, timeout=self.timeout
                )
                response.raise_for_status()
                body: Any = response.json()
        except httpx.HTTPError as e:
            raise MetadataFetchError(f"{method} request to {self.rpc_url} failed: {e}") from e
        except ValueError as e:
            raise MetadataFetchError(f"{method} returned invalid JSON: {e}") from e

        match body:
            case {"error": error}:
                raise MetadataFetchError(f"{method} returned an error: {error}")
            case {"result": result}:
                return result
            case _:
                raise MetadataFetchError(f"{method} response has no result: {body!r}")

    async def fetch_spec_version(self) -> str:
        """Fetch the node's spec version.

        Returns:
            The spec version string, e.g. "0.7.1"

        Raises:
            MetadataFetchError: If the request fails or the result is not a string
        """
        result: Any = await self._rpc_post(self.spec_version_method, [])
        if not isinstance(result, str):
            raise MetadataFetchError(
                f"{self.spec_version_method} returned a non-string result: {result!r}"
            )

        logger.debug(f"Node spec version: {result}")
        return result
