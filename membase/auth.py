"""Authorization collaborator for hub memories.

Architectural role:
    Grants and checks access to hub memories on behalf of one agent. All chain
    work (permission lookup, purchase, signing, signature checks, agent address
    lookup) is delegated to an injected `ChainCapability`; this module owns only
    the token policy.

Token policy:
    A token is the signature of the decimal unix timestamp. Tokens older than
    `TOKEN_TTL_SECONDS` are rejected.

Failure handling:
    Every rejection raises `AuthError` and is logged at warning level.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Protocol

from membase.errors import AuthError


logger = logging.getLogger(__name__)


TOKEN_TTL_SECONDS = 300


class ChainCapability(Protocol):
    """Chain operations consumed by `Auth`."""

    async def has_auth(self, resource_id: str, grantee_id: str) -> bool: ...

    async def buy(self, resource_id: str, grantee_id: str) -> Any: ...

    async def sign_message(self, message: str) -> str: ...

    async def valid_signature(self, message: str, signature: str, address: str) -> bool: ...

    async def get_agent(self, agent_id: str) -> str: ...


def _parse_timestamp(timestamp: Any, error: str) -> int:
    try:
        return int(timestamp)
    except (TypeError, ValueError) as exc:
        raise AuthError(error) from exc


class Auth:
    """Access control for one agent identity.

    Args:
        chain: Chain capability.
        agent_id: Identity that buys access and signs tokens.
        clock: Returns current unix time in seconds.
    """

    def __init__(self, chain: ChainCapability, agent_id: str, clock=time.time) -> None:
        self._chain = chain
        self._agent_id = agent_id
        self._clock = clock

    @property
    def agent_id(self) -> str:
        return self._agent_id

    async def buy_auth_onchain(self, memory_id: str) -> bool:
        """Buy access to `memory_id` unless already granted.

        Returns:
            True when a purchase was made.
        """
        if await self._chain.has_auth(memory_id, self._agent_id):
            return False

        logger.info("add agent: %s to hub memory: %s", self._agent_id, memory_id)
        try:
            await self._chain.buy(memory_id, self._agent_id)
        except Exception as exc:
            logger.warning("buy auth fail: %s", exc)
            raise
        return True

    async def create_auth(self, timestamp: Any) -> str:
        """Sign `timestamp` as an access token."""
        timestamp = _parse_timestamp(timestamp, "Invalid timestamp in create")
        return await self._chain.sign_message(str(timestamp))

    async def verify_sign(self, agent_id: str, timestamp: Any, signature: str) -> None:
        """Check that `signature` is a fresh token signed by `agent_id`.

        Raises:
            AuthError: Missing fields, bad timestamp, expired token, or bad signature.
        """
        logger.debug("sign time: %s, agent: %s, sign: %s", timestamp, agent_id, signature)
        if not signature or not timestamp or not agent_id:
            raise AuthError("Unauthorized")

        timestamp = _parse_timestamp(timestamp, "Invalid timestamp")
        if int(self._clock()) - timestamp > TOKEN_TTL_SECONDS:
            logger.warning("%s has expired token", agent_id)
            raise AuthError("Token expired")

        address = await self._chain.get_agent(agent_id)
        if not await self._chain.valid_signature(str(timestamp), signature, address):
            logger.warning("%s has invalid signature", agent_id)
            raise AuthError("Invalid signature")

    async def verify_auth(self, task_id: str, agent_id: str, timestamp: Any, signature: str) -> None:
        """Check on-chain access to `task_id`, then the token signature.

        Raises:
            AuthError: No on-chain grant or token rejected.
        """
        if not await self._chain.has_auth(task_id, agent_id):
            logger.warning("%s is not auth on chain", agent_id)
            raise AuthError("No auth on chain")
        await self.verify_sign(agent_id, timestamp, signature)
