"""Tests for the on-chain collector and owner resolvers (mocked RPC)."""

import asyncio
import base64
import struct

import base58
import pytest

from tests.payloads import (
    MINT,
    TOKEN_PROGRAM,
    calls_for,
    largest_accounts_result,
    make_rpc,
    mint_account_result,
    supply_result,
    token_account_value,
)
from tokenscan.parsers.exceptions import NotAMintError
from tokenscan.parsers.onchain import (
    AutoOwnerResolver,
    BatchOwnerResolver,
    ConcurrentOwnerResolver,
    OnChainCollector,
    decode_mint_bytes,
    make_owner_resolver,
)
from tokenscan.parsers.rpc.exceptions import (
    RpcExhaustedError,
    RpcMalformedResponseError,
    RpcProtocolError,
    RpcServerError,
    RpcTimeoutError,
)

AUTHORITY = "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"
FAKE_KEY = b"\x01" * 32


def _build_mint_bytes(
    *,
    mint_authority: bytes | None = None,
    freeze_authority: bytes | None = None,
    supply: int = 5_000_000,
    decimals: int = 9,
) -> bytes:
    data = bytearray(82)
    if mint_authority:
        struct.pack_into("<I", data, 0, 1)
        data[4:36] = mint_authority
    struct.pack_into("<Q", data, 36, supply)
    data[44] = decimals
    data[45] = 1
    if freeze_authority:
        struct.pack_into("<I", data, 46, 1)
        data[50:82] = freeze_authority
    return bytes(data)


def _exhausted(method: str, error) -> RpcExhaustedError:
    return RpcExhaustedError(method, error, 2)


class TestDecodeMintBytes:
    def test_authorities_present(self) -> None:
        info = decode_mint_bytes(MINT, _build_mint_bytes(mint_authority=FAKE_KEY, freeze_authority=FAKE_KEY))
        expected = base58.b58encode(FAKE_KEY).decode()
        assert info.mint_authority == expected
        assert info.freeze_authority == expected
        assert info.decimals == 9
        assert info.supply_raw == 5_000_000

    def test_authorities_revoked(self) -> None:
        info = decode_mint_bytes(MINT, _build_mint_bytes())
        assert info.mint_authority is None
        assert info.freeze_authority is None

    def test_null_address_authority_counts_as_revoked(self) -> None:
        info = decode_mint_bytes(MINT, _build_mint_bytes(mint_authority=b"\x00" * 32))
        assert info.mint_authority is None

    def test_too_short(self) -> None:
        with pytest.raises(NotAMintError, match="too short"):
            decode_mint_bytes(MINT, b"\x00" * 40)

    def test_token_account_sized_data_is_not_a_mint(self) -> None:
        with pytest.raises(NotAMintError):
            decode_mint_bytes(MINT, b"\x00" * 165)

    def test_token2022_mint_with_extensions(self) -> None:
        raw = _build_mint_bytes() + b"\x00" * (165 - 82) + b"\x01" + b"\x00" * 8
        info = decode_mint_bytes(MINT, raw)
        assert info.decimals == 9


class TestMintFacts:
    @pytest.mark.asyncio
    async def test_merges_authorities_and_supply(self) -> None:
        rpc = make_rpc({
            "getAccountInfo": mint_account_result(mint_authority=AUTHORITY, decimals=9),
            "getTokenSupply": supply_result(1_000_000.0, decimals=6),
        })
        facts = await OnChainCollector(rpc).get_mint_facts(MINT)

        assert facts.address == MINT
        assert facts.mint_authority == AUTHORITY
        assert facts.mint_authority_active is True
        assert facts.freeze_authority is None
        assert facts.freeze_authority_active is False
        # getTokenSupply is authoritative for decimals
        assert facts.decimals == 6
        assert facts.supply_ui == 1_000_000.0
        assert facts.supply_raw == 1_000_000_000_000
        assert facts.token_program == TOKEN_PROGRAM

    @pytest.mark.asyncio
    async def test_parsed_token_account_is_not_a_mint(self) -> None:
        rpc = make_rpc({
            "getAccountInfo": {"context": {}, "value": token_account_value("Owner1")},
            "getTokenSupply": _exhausted("getTokenSupply", RpcProtocolError("not a Token mint", code=-32602)),
        })
        with pytest.raises(NotAMintError, match="account type is account"):
            await OnChainCollector(rpc).get_mint_facts(MINT)

    @pytest.mark.asyncio
    async def test_missing_account_is_not_a_mint(self) -> None:
        rpc = make_rpc({
            "getAccountInfo": {"context": {}, "value": None},
            "getTokenSupply": supply_result(1.0),
        })
        with pytest.raises(NotAMintError, match="not found"):
            await OnChainCollector(rpc).get_mint_account(MINT)

    @pytest.mark.asyncio
    async def test_base64_fallback_decodes_raw_layout(self) -> None:
        raw = _build_mint_bytes(freeze_authority=FAKE_KEY)
        rpc = make_rpc({
            "getAccountInfo": {
                "context": {},
                "value": {"owner": TOKEN_PROGRAM, "data": [base64.b64encode(raw).decode(), "base64"]},
            },
        })
        account = await OnChainCollector(rpc).get_mint_account(MINT)
        assert account.mint_authority is None
        assert account.freeze_authority == base58.b58encode(FAKE_KEY).decode()

    @pytest.mark.asyncio
    async def test_raw_data_from_non_token_program_is_not_a_mint(self) -> None:
        rpc = make_rpc({
            "getAccountInfo": {
                "context": {},
                "value": {"owner": "11111111111111111111111111111111", "data": ["", "base64"]},
            },
        })
        with pytest.raises(NotAMintError):
            await OnChainCollector(rpc).get_mint_account(MINT)

    @pytest.mark.asyncio
    async def test_rpc_exhaustion_propagates(self) -> None:
        rpc = make_rpc({
            "getAccountInfo": _exhausted("getAccountInfo", RpcTimeoutError("timed out")),
            "getTokenSupply": supply_result(1.0),
        })
        with pytest.raises(RpcExhaustedError):
            await OnChainCollector(rpc).get_mint_facts(MINT)


    @pytest.mark.asyncio
    async def test_undecodable_account_result_is_an_rpc_failure(self) -> None:
        rpc = make_rpc({
            "getAccountInfo": {"context": {}, "value": {"owner": TOKEN_PROGRAM, "lamports": "not-a-number", "data": None}},
            "getTokenSupply": supply_result(1.0),
        })
        with pytest.raises(RpcExhaustedError) as exc_info:
            await OnChainCollector(rpc).get_mint_facts(MINT)
        assert isinstance(exc_info.value.last_error, RpcMalformedResponseError)


class TestSupply:
    @pytest.mark.asyncio
    async def test_ui_amount_string_used_when_ui_amount_null(self) -> None:
        rpc = make_rpc({"getTokenSupply": {"value": {
            "amount": "123450000", "decimals": 4, "uiAmount": None, "uiAmountString": "12345",
        }}})
        supply = await OnChainCollector(rpc).get_supply(MINT)
        assert supply.supply_ui == 12345.0
        assert supply.decimals == 4

    @pytest.mark.asyncio
    async def test_raw_amount_scaled_when_no_ui_fields(self) -> None:
        rpc = make_rpc({"getTokenSupply": supply_result(None, decimals=2, amount="250")})
        supply = await OnChainCollector(rpc).get_supply(MINT)
        assert supply.supply_ui == 2.5
        assert supply.supply_raw == 250


class TestLargestHolders:
    @pytest.mark.asyncio
    async def test_resorted_descending(self) -> None:
        rpc = make_rpc({"getTokenLargestAccounts": largest_accounts_result({
            "acctSmall": 10.0, "acctBig": 900.0, "acctMid": 90.0,
        })})
        holders = await OnChainCollector(rpc).get_largest_holders(MINT)
        assert [h.token_account for h in holders] == ["acctBig", "acctMid", "acctSmall"]
        assert all(h.owner is None for h in holders)

    @pytest.mark.asyncio
    async def test_bounded_by_limit(self) -> None:
        amounts = {f"acct{i:02d}": float(i) for i in range(30)}
        rpc = make_rpc({"getTokenLargestAccounts": largest_accounts_result(amounts)})
        holders = await OnChainCollector(rpc).get_largest_holders(MINT, limit=20)
        assert len(holders) == 20
        assert holders[0].token_account == "acct29"

    @pytest.mark.asyncio
    async def test_fewer_than_limit(self) -> None:
        rpc = make_rpc({"getTokenLargestAccounts": largest_accounts_result({"only": 1.0})})
        holders = await OnChainCollector(rpc).get_largest_holders(MINT, limit=20)
        assert len(holders) == 1


class TestOwnerResolution:
    @pytest.mark.asyncio
    async def test_batch_maps_owners_and_degrades_bad_entries(self) -> None:
        rpc = make_rpc({"getMultipleAccounts": {"context": {}, "value": [
            token_account_value("WalletA"),
            None,
            {"owner": TOKEN_PROGRAM, "data": {"program": "spl-token", "parsed": {"type": "mint", "info": {}}}},
        ]}})
        owners = await BatchOwnerResolver(rpc).resolve(["t1", "t2", "t3"])
        assert owners == {"t1": "WalletA", "t2": None, "t3": None}
        assert len(calls_for(rpc, "getMultipleAccounts")) == 1

    @pytest.mark.asyncio
    async def test_batch_chunks_large_lists(self) -> None:
        def respond(params):
            return {"value": [token_account_value(f"W-{a}") for a in params[0]]}

        rpc = make_rpc({"getMultipleAccounts": respond})
        accounts = [f"acct{i}" for i in range(5)]
        owners = await BatchOwnerResolver(rpc, chunk_size=2).resolve(accounts)
        assert owners["acct4"] == "W-acct4"
        assert len(calls_for(rpc, "getMultipleAccounts")) == 3

    @pytest.mark.asyncio
    async def test_concurrent_resolver_is_bounded_and_isolates_failures(self) -> None:
        in_flight = 0
        peak = 0

        async def respond(params):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            if params[0] == "acct3":
                raise _exhausted("getAccountInfo", RpcServerError("HTTP 502"))
            return {"value": token_account_value(f"W-{params[0]}")}

        rpc = make_rpc({"getAccountInfo": respond})
        accounts = [f"acct{i}" for i in range(12)]
        owners = await ConcurrentOwnerResolver(rpc, concurrency=5).resolve(accounts)

        assert peak <= 5
        assert owners["acct3"] is None
        assert owners["acct0"] == "W-acct0"
        assert sum(1 for o in owners.values() if o is None) == 1

    @pytest.mark.asyncio
    async def test_auto_falls_back_when_batch_unsupported(self) -> None:
        rpc = make_rpc({
            "getMultipleAccounts": _exhausted("getMultipleAccounts", RpcProtocolError("Method not found", code=-32601)),
            "getAccountInfo": lambda params: {"value": token_account_value(f"W-{params[0]}")},
        })
        resolver = AutoOwnerResolver(rpc, concurrency=5)

        owners = await resolver.resolve(["a1", "a2"])
        assert owners == {"a1": "W-a1", "a2": "W-a2"}
        assert resolver.batch_supported is False

        await resolver.resolve(["a3"])
        assert len(calls_for(rpc, "getMultipleAccounts")) == 1

    @pytest.mark.asyncio
    async def test_auto_keeps_batch_after_transient_failure(self) -> None:
        rpc = make_rpc({
            "getMultipleAccounts": _exhausted("getMultipleAccounts", RpcTimeoutError("timed out")),
            "getAccountInfo": lambda params: {"value": token_account_value("W")},
        })
        resolver = AutoOwnerResolver(rpc)
        await resolver.resolve(["a1"])
        assert resolver.batch_supported is None

    @pytest.mark.asyncio
    async def test_collector_degrades_total_failure_to_unresolved(self) -> None:
        rpc = make_rpc({"getMultipleAccounts": _exhausted("getMultipleAccounts", RpcTimeoutError("timed out"))})
        collector = OnChainCollector(rpc, owner_resolver=BatchOwnerResolver(rpc))
        owners = await collector.resolve_owners(["a1", "a2", "a1"])
        assert owners == {"a1": None, "a2": None}

    @pytest.mark.asyncio
    async def test_collector_skips_empty_input(self) -> None:
        rpc = make_rpc({})
        assert await OnChainCollector(rpc).resolve_owners([]) == {}
        rpc.call.assert_not_awaited()

    def test_make_owner_resolver_modes(self) -> None:
        rpc = make_rpc({})
        assert isinstance(make_owner_resolver(rpc, "batch"), BatchOwnerResolver)
        assert isinstance(make_owner_resolver(rpc, "individual"), ConcurrentOwnerResolver)
        assert isinstance(make_owner_resolver(rpc, "auto"), AutoOwnerResolver)
        with pytest.raises(ValueError):
            make_owner_resolver(rpc, "psychic")
