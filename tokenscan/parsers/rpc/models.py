"""Pydantic models for the Solana JSON-RPC results the scanner consumes."""

import base64
import binascii
from typing import Any

from pydantic import BaseModel


class TokenAmount(BaseModel):
    amount: str = "0"
    decimals: int = 0
    uiAmount: float | None = None
    uiAmountString: str | None = None

    model_config = {"extra": "ignore"}

    @property
    def raw(self) -> int:
        try:
            return int(self.amount)
        except ValueError:
            return 0

    @property
    def ui_value(self) -> float:
        """uiAmount, else uiAmountString, else amount scaled by decimals.

        uiAmount is null for amounts that overflow a float on some nodes.
        """
        if self.uiAmount is not None:
            return self.uiAmount
        if self.uiAmountString:
            try:
                return float(self.uiAmountString)
            except ValueError:
                pass
        return self.raw / (10**self.decimals)


class LargestAccount(TokenAmount):
    address: str


class ParsedInfo(BaseModel):
    type: str = ""
    info: dict[str, Any] = {}

    model_config = {"extra": "ignore"}


class ParsedData(BaseModel):
    program: str = ""
    parsed: ParsedInfo | None = None
    space: int | None = None

    model_config = {"extra": "ignore"}


class AccountInfo(BaseModel):
    owner: str = ""  # program that owns the account
    lamports: int = 0
    data: ParsedData | list[str] | str | None = None

    model_config = {"extra": "ignore"}

    @property
    def parsed(self) -> ParsedInfo | None:
        if isinstance(self.data, ParsedData):
            return self.data.parsed
        return None

    @property
    def raw_bytes(self) -> bytes | None:
        """Account bytes when the node fell back to base64 encoding."""
        if not isinstance(self.data, list) or len(self.data) < 2:
            return None
        if self.data[1] != "base64":
            return None
        try:
            return base64.b64decode(self.data[0])
        except (binascii.Error, ValueError):
            return None


class MintAccountInfo(BaseModel):
    """parsed.info of a jsonParsed mint account."""

    decimals: int | None = None
    supply: str | None = None
    mintAuthority: str | None = None
    freezeAuthority: str | None = None
    isInitialized: bool = True

    model_config = {"extra": "ignore"}


class TokenAccountInfo(BaseModel):
    """parsed.info of a jsonParsed token account."""

    owner: str | None = None
    mint: str | None = None
    state: str | None = None

    model_config = {"extra": "ignore"}


class AccountInfoResult(BaseModel):
    value: AccountInfo | None = None

    model_config = {"extra": "ignore"}


class MultipleAccountsResult(BaseModel):
    value: list[AccountInfo | None] = []

    model_config = {"extra": "ignore"}


class TokenSupplyResult(BaseModel):
    value: TokenAmount

    model_config = {"extra": "ignore"}


class LargestAccountsResult(BaseModel):
    value: list[LargestAccount] = []

    model_config = {"extra": "ignore"}
