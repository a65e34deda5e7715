"""
Wallet: keypair loading, fee-instruction pinning and transaction signing.

Keypairs load from either form Solana tooling produces:
    - base58 secret key string (wallet export)
    - JSON byte array, inline or in a keypair file (solana-keygen)

Before signing, the compute-budget instructions already present in the
router's transaction are rewritten to the chosen GasSettings, so the fee we
selected is the fee we pay.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import List, Union

import base58

from solders.instruction import CompiledInstruction
from solders.keypair import Keypair
from solders.message import Message, MessageV0
from solders.pubkey import Pubkey
from solders.transaction import VersionedTransaction

from .gas import GasSettings

logger = logging.getLogger(__name__)

COMPUTE_BUDGET_PROGRAM_ID = Pubkey.from_string("ComputeBudget111111111111111111111111111111")

# ComputeBudgetInstruction discriminators
SET_COMPUTE_UNIT_LIMIT = 2
SET_COMPUTE_UNIT_PRICE = 3


class SigningError(Exception):
    """Transaction could not be decoded, prepared or signed."""
    pass


def load_keypair(secret: Union[str, os.PathLike]) -> Keypair:
    """
    Load a keypair from a base58 secret, a JSON byte array or a keypair file.

    Raises:
        ValueError: If the secret is in none of the supported forms
    """
    value = str(secret).strip()
    if not value:
        raise ValueError("Empty wallet secret")

    if not value.startswith("["):
        path = Path(value).expanduser()
        if path.is_file():
            value = path.read_text().strip()

    if value.startswith("["):
        try:
            raw = bytes(json.loads(value))
            return Keypair.from_bytes(raw)
        except (ValueError, TypeError) as e:
            raise ValueError(f"Invalid keypair byte array: {e}") from e

    return _keypair_from_base58(value)


def _keypair_from_base58(value: str) -> Keypair:
    try:
        raw = base58.b58decode(value)
    except ValueError as e:
        raise ValueError(f"Unsupported wallet secret format: {e}") from e
    if len(raw) != 64:
        raise ValueError(f"Base58 secret must decode to 64 bytes, got {len(raw)}")
    return Keypair.from_bytes(raw)


def secret_key_to_json_array(secret_base58: str) -> List[int]:
    """
    Convert a base58 secret key into the 64-byte array used by keypair files.

    Raises:
        ValueError: If the secret is not a valid base58 keypair
    """
    keypair = _keypair_from_base58(secret_base58.strip())
    return list(bytes(keypair))


def compute_unit_limit_data(units: int) -> bytes:
    return bytes([SET_COMPUTE_UNIT_LIMIT]) + units.to_bytes(4, "little")


def compute_unit_price_data(micro_lamports: int) -> bytes:
    return bytes([SET_COMPUTE_UNIT_PRICE]) + micro_lamports.to_bytes(8, "little")


def attach_fee_instructions(
    transaction: VersionedTransaction,
    gas: GasSettings,
) -> VersionedTransaction:
    """
    Rewrite the compute-budget instructions of an unsigned transaction.

    Only instructions that already target the compute-budget program are
    rewritten; account indices are left untouched so address lookup
    tables stay valid. The returned transaction is unsigned.
    """
    message = transaction.message
    keys = list(message.account_keys)

    try:
        budget_index = keys.index(COMPUTE_BUDGET_PROGRAM_ID)
    except ValueError:
        logger.warning("Transaction has no compute-budget instructions; router fee settings apply")
        return transaction

    instructions = []
    rewritten = 0
    for ix in message.instructions:
        if ix.program_id_index == budget_index and ix.data:
            kind = ix.data[0]
            if kind == SET_COMPUTE_UNIT_LIMIT:
                ix = CompiledInstruction(ix.program_id_index, compute_unit_limit_data(gas.compute_unit_limit), ix.accounts)
                rewritten += 1
            elif kind == SET_COMPUTE_UNIT_PRICE:
                ix = CompiledInstruction(ix.program_id_index, compute_unit_price_data(gas.priority_fee_per_unit), ix.accounts)
                rewritten += 1
        instructions.append(ix)

    logger.debug(f"Rewrote {rewritten} compute-budget instruction(s) to {gas}")

    if isinstance(message, MessageV0):
        new_message = MessageV0(
            message.header,
            keys,
            message.recent_blockhash,
            instructions,
            list(message.address_table_lookups),
        )
    else:
        header = message.header
        new_message = Message.new_with_compiled_instructions(
            header.num_required_signatures,
            header.num_readonly_signed_accounts,
            header.num_readonly_unsigned_accounts,
            keys,
            message.recent_blockhash,
            instructions,
        )

    return VersionedTransaction.populate(new_message, list(transaction.signatures))


class Wallet:
    """
    Single signing wallet.

    Usage:
        wallet = Wallet.from_secret(os.environ["WALLET_SECRET_KEY"])
        signed = wallet.sign(unsigned_tx_bytes, gas)
    """

    def __init__(self, keypair: Keypair) -> None:
        self._keypair = keypair

    @classmethod
    def from_secret(cls, secret: Union[str, os.PathLike]) -> "Wallet":
        return cls(load_keypair(secret))

    @property
    def public_key(self) -> str:
        return str(self._keypair.pubkey())

    @property
    def pubkey(self) -> Pubkey:
        return self._keypair.pubkey()

    def sign(self, raw_transaction: bytes, gas: GasSettings) -> bytes:
        """
        Decode, pin fees and sign a router transaction.

        Returns:
            Signed serialized transaction

        Raises:
            SigningError: If any step fails
        """
        try:
            unsigned = VersionedTransaction.from_bytes(raw_transaction)
        except Exception as e:
            raise SigningError(f"Could not decode transaction: {e}") from e

        try:
            prepared = attach_fee_instructions(unsigned, gas)
            signed = VersionedTransaction(prepared.message, [self._keypair])
        except Exception as e:
            raise SigningError(f"Could not sign transaction: {e}") from e

        return bytes(signed)

    def __repr__(self) -> str:
        return f"Wallet({self.public_key})"

