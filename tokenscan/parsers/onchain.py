"""On-chain fact collection for a single token mint.

All reads go through one RpcClient. Payloads are validated into the
pydantic models of tokenscan.parsers.rpc.models and converted to the
frozen fact types of tokenscan.parsers.report before they leave here.
"""

import asyncio
import struct

import base58
from loguru import logger
from pydantic import ValidationError

from tokenscan.parsers.address import short_address
from tokenscan.parsers.exceptions import NotAMintError
from tokenscan.parsers.report import HolderAccount, MintAccount, TokenMintFacts, TokenSupply
from tokenscan.parsers.rpc.client import RpcClient
from tokenscan.parsers.rpc.exceptions import (
    RpcError,
    RpcExhaustedError,
    RpcProtocolError,
)
from tokenscan.parsers.rpc.models import (
    AccountInfo,
    AccountInfoResult,
    LargestAccountsResult,
    MintAccountInfo,
    MultipleAccountsResult,
    TokenAccountInfo,
    TokenSupplyResult,
)
from tokenscan.utils.tasks import gather_in_order

TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
TOKEN_2022_PROGRAM_ID = "TokenzQdBNbLqP5VEhdkAS6EPFLC1PTkZ6Yh3ikQ5wR8"
TOKEN_PROGRAMS = {TOKEN_PROGRAM_ID, TOKEN_2022_PROGRAM_ID}

# SPL Token mint layout: 82 bytes
# [0:36]   mintAuthorityOption (4) + mintAuthority (32)
# [36:44]  supply (u64)
# [44:45]  decimals (u8)
# [45:46]  isInitialized (bool)
# [46:82]  freezeAuthorityOption (4) + freezeAuthority (32)
SPL_MINT_SIZE = 82
# Token accounts are 165 bytes; Token2022 stores the account type right after
TOKEN_ACCOUNT_SIZE = 165
ACCOUNT_TYPE_MINT = 1

NULL_ADDRESS = "11111111111111111111111111111111"

DEFAULT_HOLDER_LIMIT = 20
MULTIPLE_ACCOUNTS_MAX = 100
DEFAULT_OWNER_CONCURRENCY = 8

_ACCOUNT_OPTS = {"encoding": "jsonParsed", "commitment": "confirmed"}


def _b58(data: bytes) -> str:
    return base58.b58encode(data).decode("ascii")


def decode_mint_bytes(address: str, raw: bytes, token_program: str | None = None) -> MintAccount:
    """Decode a raw SPL / Token2022 mint account.

    Raises NotAMintError if the bytes cannot be a mint.
    """
    if len(raw) < SPL_MINT_SIZE:
        raise NotAMintError(address, f"data too short: {len(raw)} bytes")
    if len(raw) != SPL_MINT_SIZE:
        # Token2022 mint with extensions: padded to 165 bytes + account type
        if len(raw) <= TOKEN_ACCOUNT_SIZE or raw[TOKEN_ACCOUNT_SIZE] != ACCOUNT_TYPE_MINT:
            raise NotAMintError(address, f"unexpected account size {len(raw)}")

    def _authority(option_offset: int) -> str | None:
        option = struct.unpack_from("<I", raw, option_offset)[0]
        if option != 1:
            return None
        key = _b58(raw[option_offset + 4:option_offset + 36])
        return None if key == NULL_ADDRESS else key

    if raw[45] != 1:
        raise NotAMintError(address, "mint is not initialized")

    return MintAccount(
        address=address,
        mint_authority=_authority(0),
        freeze_authority=_authority(46),
        token_program=token_program,
        decimals=raw[44],
        supply_raw=struct.unpack_from("<Q", raw, 36)[0],
    )


def owner_of_token_account(account: AccountInfo | None) -> str | None:
    """Wallet owning a token account, or None when it cannot be determined."""
    if account is None:
        return None
    parsed = account.parsed
    if parsed is not None:
        if parsed.type != "account":
            return None
        try:
            return TokenAccountInfo.model_validate(parsed.info).owner
        except ValidationError:
            return None
    raw = account.raw_bytes
    if raw is not None and len(raw) >= TOKEN_ACCOUNT_SIZE:
        # [0:32] mint, [32:64] owner
        return _b58(raw[32:64])
    return None


class OwnerResolver:
    """Maps token accounts to owning wallets."""

    name = "base"

    def __init__(self, rpc: RpcClient) -> None:
        self._rpc = rpc

    async def resolve(self, token_accounts: list[str]) -> dict[str, str | None]:
        raise NotImplementedError


class BatchOwnerResolver(OwnerResolver):
    """One getMultipleAccounts call per chunk of 100 accounts.

    RPC failures propagate: a failed chunk means the batch API is not
    usable, which the caller decides how to handle.
    """

    name = "batch"

    def __init__(self, rpc: RpcClient, *, chunk_size: int = MULTIPLE_ACCOUNTS_MAX) -> None:
        super().__init__(rpc)
        self._chunk_size = chunk_size

    async def resolve(self, token_accounts: list[str]) -> dict[str, str | None]:
        owners: dict[str, str | None] = {}
        for i in range(0, len(token_accounts), self._chunk_size):
            chunk = token_accounts[i:i + self._chunk_size]
            result = await self._rpc.call(
                "getMultipleAccounts", [chunk, _ACCOUNT_OPTS], decode=MultipleAccountsResult.model_validate,
            )
            values = result.value
            for j, address in enumerate(chunk):
                owners[address] = owner_of_token_account(values[j]) if j < len(values) else None
        return owners


class ConcurrentOwnerResolver(OwnerResolver):
    """getAccountInfo per account, at most `concurrency` in flight."""

    name = "individual"

    def __init__(self, rpc: RpcClient, *, concurrency: int = DEFAULT_OWNER_CONCURRENCY) -> None:
        super().__init__(rpc)
        self._concurrency = max(1, concurrency)

    async def resolve(self, token_accounts: list[str]) -> dict[str, str | None]:
        semaphore = asyncio.Semaphore(self._concurrency)

        async def _one(address: str) -> str | None:
            async with semaphore:
                try:
                    result = await self._rpc.call(
                        "getAccountInfo", [address, _ACCOUNT_OPTS], decode=AccountInfoResult.model_validate,
                    )
                    return owner_of_token_account(result.value)
                except RpcError as e:
                    logger.debug(f"[ONCHAIN] Owner lookup failed for {short_address(address)}: {e}")
                    return None

        owners = await asyncio.gather(*(_one(a) for a in token_accounts))
        return dict(zip(token_accounts, owners))


class AutoOwnerResolver(OwnerResolver):
    """Batch first; individual calls when the upstream cannot batch.

    A JSON-RPC error on getMultipleAccounts marks the batch API as
    unsupported for the lifetime of this resolver.
    """

    name = "auto"

    def __init__(self, rpc: RpcClient, *, concurrency: int = DEFAULT_OWNER_CONCURRENCY) -> None:
        super().__init__(rpc)
        self._batch = BatchOwnerResolver(rpc)
        self._individual = ConcurrentOwnerResolver(rpc, concurrency=concurrency)
        self.batch_supported: bool | None = None

    async def resolve(self, token_accounts: list[str]) -> dict[str, str | None]:
        if self.batch_supported is not False:
            try:
                owners = await self._batch.resolve(token_accounts)
                self.batch_supported = True
                return owners
            except RpcExhaustedError as e:
                if isinstance(e.last_error, RpcProtocolError):
                    self.batch_supported = False
                    logger.info(f"[ONCHAIN] Batch owner lookup rejected upstream ({e.last_error}), using individual calls")
                else:
                    logger.debug(f"[ONCHAIN] Batch owner lookup failed, falling back: {e}")
        return await self._individual.resolve(token_accounts)


def make_owner_resolver(rpc: RpcClient, mode: str = "auto", concurrency: int = DEFAULT_OWNER_CONCURRENCY) -> OwnerResolver:
    if mode == "batch":
        return BatchOwnerResolver(rpc)
    if mode == "individual":
        return ConcurrentOwnerResolver(rpc, concurrency=concurrency)
    if mode == "auto":
        return AutoOwnerResolver(rpc, concurrency=concurrency)
    raise ValueError(f"Unknown owner resolution mode: {mode!r}")


class OnChainCollector:
    """Reads the mint-level facts a risk assessment needs."""

    def __init__(self, rpc: RpcClient, *, owner_resolver: OwnerResolver | None = None) -> None:
        self._rpc = rpc
        self._owner_resolver = owner_resolver or AutoOwnerResolver(rpc)

    async def get_mint_account(self, mint: str) -> MintAccount:
        """Authorities from the mint account. Raises NotAMintError."""
        result = await self._rpc.call("getAccountInfo", [mint, _ACCOUNT_OPTS], decode=AccountInfoResult.model_validate)
        account = result.value
        if account is None:
            raise NotAMintError(mint, "account not found")

        parsed = account.parsed
        if parsed is None:
            raw = account.raw_bytes
            if raw is None or account.owner not in TOKEN_PROGRAMS:
                raise NotAMintError(mint, f"account owned by {account.owner or 'unknown program'}")
            return decode_mint_bytes(mint, raw, account.owner)

        if parsed.type != "mint":
            raise NotAMintError(mint, f"account type is {parsed.type or 'unknown'}")
        try:
            info = MintAccountInfo.model_validate(parsed.info)
        except ValidationError as e:
            raise NotAMintError(mint, "mint info not decodable") from e

        supply_raw = None
        if info.supply is not None and info.supply.isdigit():
            supply_raw = int(info.supply)
        return MintAccount(
            address=mint,
            mint_authority=info.mintAuthority or None,
            freeze_authority=info.freezeAuthority or None,
            token_program=account.owner or None,
            decimals=info.decimals,
            supply_raw=supply_raw,
        )

    async def get_supply(self, mint: str) -> TokenSupply:
        result = await self._rpc.call("getTokenSupply", [mint], decode=TokenSupplyResult.model_validate)
        amount = result.value
        return TokenSupply(
            decimals=amount.decimals,
            supply_raw=amount.raw,
            supply_ui=amount.ui_value,
        )

    async def get_mint_facts(self, mint: str) -> TokenMintFacts:
        """Mint account and supply fetched concurrently, merged.

        Decimals and supply come from getTokenSupply; the mint account's
        own fields are only a fallback hint and are not trusted. When both
        reads fail together the mint account's error (NotAMintError) wins.
        """
        account, supply = await gather_in_order(
            self.get_mint_account(mint),
            self.get_supply(mint),
        )

        if account.decimals is not None and account.decimals != supply.decimals:
            logger.debug(
                f"[ONCHAIN] Decimals mismatch for {short_address(mint)}: "
                f"account={account.decimals} supply={supply.decimals}"
            )
        return TokenMintFacts(
            address=mint,
            decimals=supply.decimals,
            supply_raw=supply.supply_raw,
            supply_ui=supply.supply_ui,
            mint_authority=account.mint_authority,
            freeze_authority=account.freeze_authority,
            token_program=account.token_program,
        )

    async def get_largest_holders(self, mint: str, limit: int = DEFAULT_HOLDER_LIMIT) -> list[HolderAccount]:
        """Top token accounts by balance, owners not yet resolved."""
        result = await self._rpc.call(
            "getTokenLargestAccounts", [mint], decode=LargestAccountsResult.model_validate,
        )
        accounts = result.value

        # Upstream ordering is not guaranteed
        accounts = sorted(accounts, key=lambda a: a.ui_value, reverse=True)
        return [
            HolderAccount(token_account=a.address, amount_ui=a.ui_value)
            for a in accounts[:max(limit, 0)]
        ]

    async def resolve_owners(self, token_accounts: list[str]) -> dict[str, str | None]:
        """Owner per token account; failures degrade to None entries."""
        unique = list(dict.fromkeys(token_accounts))
        if not unique:
            return {}
        try:
            owners = await self._owner_resolver.resolve(unique)
        except RpcError as e:
            logger.warning(f"[ONCHAIN] Owner resolution ({self._owner_resolver.name}) failed: {e}")
            owners = {}
        return {address: owners.get(address) for address in unique}
