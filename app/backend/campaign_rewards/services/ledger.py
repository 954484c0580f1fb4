"""
Settlement ledger - Solana access for the treasury account.

Reads balances and transaction finality, submits reward transfers from the
treasury and lists its recent outbound transfers for reconciliation. Rewards
are paid in native SOL, or in an SPL token when ``reward_token_mint`` is set.
"""

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, ROUND_DOWN, InvalidOperation, localcontext
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Protocol

import base58
import structlog
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment
from solana.rpc.types import TxOpts
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.system_program import transfer, TransferParams
from solders.transaction import Transaction
from solders.transaction_status import TransactionConfirmationStatus
from spl.token.instructions import (
    TransferCheckedParams,
    create_associated_token_account,
    get_associated_token_address,
    transfer_checked,
)
from spl.token.constants import TOKEN_PROGRAM_ID

from campaign_rewards.core.config import settings, SolanaConfig
from campaign_rewards.core.exceptions import (
    SettlementError, SolanaError, TreasuryUnavailableError, ValidationError
)

logger = structlog.get_logger(__name__)

_PRECISION = 80


# ---------------------------------------------------------------------------
# Amount conversion
# ---------------------------------------------------------------------------

def to_base_units(amount: Any, decimals: int) -> int:
    """
    Convert a token amount to the chain's smallest unit.

    Fractional remainders below one base unit are truncated toward zero:
    ``to_base_units("0.000001", 18) == 10**12``.
    """
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid token amount: {amount}", {"amount": str(amount)})
    if not value.is_finite() or value < 0:
        raise ValidationError(f"Invalid token amount: {amount}", {"amount": str(amount)})

    with localcontext() as ctx:
        ctx.prec = _PRECISION
        scaled = value.scaleb(decimals).to_integral_value(rounding=ROUND_DOWN)
    return int(scaled)


def from_base_units(raw: int, decimals: int) -> Decimal:
    """Convert a smallest-unit integer back to a token amount."""
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        return Decimal(int(raw)).scaleb(-decimals)


def format_token_amount(raw: int, decimals: int, places: int = 4) -> str:
    """Display value truncated to ``places`` decimals."""
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        value = from_base_units(raw, decimals)
        return str(value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_DOWN))


# ---------------------------------------------------------------------------
# Ledger types
# ---------------------------------------------------------------------------

class TransactionState(str, Enum):
    """Observed on-chain state of a transaction signature."""
    CONFIRMED = "confirmed"
    FAILED = "failed"
    UNKNOWN = "unknown"


@dataclass
class OutboundTransfer:
    """A transfer that left the treasury."""
    signature: str
    destination: str
    amount: int
    block_time: Optional[datetime] = None


@dataclass
class TreasuryHandle:
    """
    Authenticated handle on the treasury account for one payout batch.

    ``sequence`` numbers the transfers issued through this handle; it only
    ever increases.
    """
    address: str
    keypair: Optional[Keypair] = None
    sequence: int = 0

    def next_sequence(self) -> int:
        self.sequence += 1
        return self.sequence


class Ledger(Protocol):
    """Operations the payout engine and reconciliation depend on."""

    decimals: int

    def treasury_address(self) -> str: ...

    def destination_for(self, recipient: str) -> str: ...

    async def resolve_treasury(self) -> TreasuryHandle: ...

    async def balance(self, address: str) -> int: ...

    async def submit_transfer(self, treasury: TreasuryHandle, recipient: str, amount: int) -> str: ...

    async def wait_for_finality(self, signature: str) -> None: ...

    async def transaction_status(self, signature: str) -> TransactionState: ...

    async def settlement_transfers(self, signature: str) -> List[OutboundTransfer]: ...

    async def recent_outbound_transfers(self, limit: int) -> List[OutboundTransfer]: ...


# ---------------------------------------------------------------------------
# Parsed transaction helpers
# ---------------------------------------------------------------------------

def _message_instructions(payload: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Locate ``message.instructions`` in a jsonParsed transaction payload."""
    node: Any = payload
    # getTransaction nests the signed transaction up to two levels down
    for _ in range(2):
        if isinstance(node, dict) and "message" not in node and "transaction" in node:
            node = node["transaction"]
    if not isinstance(node, dict):
        return []
    message = node.get("message") or {}
    instructions = message.get("instructions") or []
    return [i for i in instructions if isinstance(i, dict)]


def _block_time(payload: Dict[str, Any]) -> Optional[datetime]:
    value = payload.get("blockTime", payload.get("block_time"))
    if value is None:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def parse_outbound_transfers(
    payload: Dict[str, Any],
    signature: str,
    sources: Iterable[str],
) -> List[OutboundTransfer]:
    """
    Extract transfers debiting any of ``sources`` from a jsonParsed transaction.

    Handles system-program ``transfer`` and token-program ``transfer`` /
    ``transferChecked`` instructions.
    """
    sources = set(sources)
    block_time = _block_time(payload)
    transfers = []

    for instruction in _message_instructions(payload):
        parsed = instruction.get("parsed")
        if not isinstance(parsed, dict):
            continue
        kind = parsed.get("type")
        info = parsed.get("info") or {}
        if info.get("source") not in sources and info.get("authority") not in sources:
            continue

        if kind == "transfer" and "lamports" in info:
            amount = int(info["lamports"])
        elif kind == "transfer" and "amount" in info:
            amount = int(info["amount"])
        elif kind == "transferChecked":
            amount = int((info.get("tokenAmount") or {}).get("amount", 0))
        else:
            continue

        transfers.append(OutboundTransfer(
            signature=signature,
            destination=str(info.get("destination")),
            amount=amount,
            block_time=block_time,
        ))

    return transfers


# ---------------------------------------------------------------------------
# Solana implementation
# ---------------------------------------------------------------------------

class SolanaLedger:
    """
    Treasury access over Solana JSON-RPC.

    Reads use the configured commitment ("confirmed" or "finalized"), never
    "processed", so balances exclude in-flight transfers.
    """

    def __init__(
        self,
        client: Optional[AsyncClient] = None,
        treasury_private_key: Optional[str] = None,
        reward_mint: Optional[str] = None,
    ):
        rpc_config = SolanaConfig.get_rpc_config()
        self.commitment = Commitment(rpc_config["commitment"])
        self.client = client or AsyncClient(
            endpoint=rpc_config["endpoint"],
            commitment=self.commitment,
            timeout=rpc_config["timeout"]
        )
        self._private_key = treasury_private_key or settings.treasury_private_key
        mint = reward_mint if reward_mint is not None else settings.reward_token_mint
        self.mint: Optional[Pubkey] = Pubkey.from_string(mint) if mint else None
        self.decimals = settings.reward_token_decimals if self.mint else SolanaConfig.NATIVE_DECIMALS
        self._keypair: Optional[Keypair] = None
        self.logger = logger.bind(service="solana_ledger")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        """Close the RPC client connection."""
        await self.client.close()

    # -- treasury ----------------------------------------------------------

    def _load_keypair(self) -> Keypair:
        if self._keypair is None:
            if not self._private_key:
                raise TreasuryUnavailableError("Treasury private key not configured")
            try:
                private_key_bytes = base58.b58decode(self._private_key)
                self._keypair = Keypair.from_bytes(private_key_bytes)
            except ValueError as e:
                raise TreasuryUnavailableError(f"Invalid treasury private key: {e}")
        return self._keypair

    def treasury_address(self) -> str:
        return str(self._load_keypair().pubkey())

    def destination_for(self, recipient: str) -> str:
        """Account a reward to ``recipient`` is credited on."""
        if self.mint is None:
            return recipient
        return str(get_associated_token_address(Pubkey.from_string(recipient), self.mint))

    def _treasury_source(self) -> str:
        return self.destination_for(self.treasury_address())

    async def resolve_treasury(self) -> TreasuryHandle:
        """Load the treasury keypair and check the RPC endpoint answers for it."""
        keypair = self._load_keypair()
        try:
            await self.client.get_balance(keypair.pubkey(), commitment=self.commitment)
        except Exception as e:
            self.logger.error("Treasury resolution failed", error=str(e))
            raise TreasuryUnavailableError(f"Treasury account unreachable: {e}")

        self.logger.info("Treasury resolved", treasury=str(keypair.pubkey()))
        return TreasuryHandle(address=str(keypair.pubkey()), keypair=keypair)

    # -- reads -------------------------------------------------------------

    async def balance(self, address: str) -> int:
        """Raw reward-token balance of ``address`` at the configured commitment."""
        try:
            owner = Pubkey.from_string(address)
            if self.mint is None:
                response = await self.client.get_balance(owner, commitment=self.commitment)
                return int(response.value)

            token_account = get_associated_token_address(owner, self.mint)
            response = await self.client.get_token_account_balance(
                token_account, commitment=self.commitment
            )
            return int(response.value.amount)
        except Exception as e:
            self.logger.error("Failed to get balance", address=address, error=str(e))
            raise SolanaError(f"Failed to check balance: {e}", {"address": address})

    async def transaction_status(self, signature: str) -> TransactionState:
        """Look up a signature, including transaction history."""
        try:
            response = await self.client.get_signature_statuses(
                [Signature.from_string(signature)],
                search_transaction_history=True
            )
        except Exception as e:
            raise SolanaError(f"Failed to get transaction status: {e}", {"signature": signature})

        status = response.value[0]
        if status is None:
            return TransactionState.UNKNOWN
        if status.err is not None:
            return TransactionState.FAILED
        if status.confirmation_status in (
            TransactionConfirmationStatus.Confirmed,
            TransactionConfirmationStatus.Finalized,
        ):
            return TransactionState.CONFIRMED
        return TransactionState.UNKNOWN

    def _treasury_sources(self) -> set:
        return {self.treasury_address(), self._treasury_source()}

    async def _outbound_from(self, signature: Signature, sources: set) -> List[OutboundTransfer]:
        response = await self.client.get_transaction(
            signature,
            encoding="jsonParsed",
            commitment=self.commitment,
            max_supported_transaction_version=0
        )
        if response.value is None:
            return []
        payload = json.loads(response.value.to_json())
        return parse_outbound_transfers(payload, str(signature), sources)

    async def settlement_transfers(self, signature: str) -> List[OutboundTransfer]:
        """Transfers debiting the treasury in the transaction ``signature``."""
        sources = self._treasury_sources()
        try:
            return await self._outbound_from(Signature.from_string(signature), sources)
        except Exception as e:
            raise SolanaError(f"Failed to get transaction: {e}", {"signature": signature})

    async def recent_outbound_transfers(self, limit: int) -> List[OutboundTransfer]:
        """Transfers out of the treasury among its ``limit`` latest signatures."""
        treasury = self._load_keypair().pubkey()
        sources = self._treasury_sources()

        try:
            response = await self.client.get_signatures_for_address(
                treasury, limit=limit, commitment=self.commitment
            )
        except Exception as e:
            raise SolanaError(f"Failed to get signatures for treasury: {e}")

        transfers: List[OutboundTransfer] = []
        for info in response.value:
            if info.err is not None:
                continue
            try:
                transfers.extend(await self._outbound_from(info.signature, sources))
            except Exception as e:
                self.logger.warning(
                    "Failed to fetch treasury transaction",
                    signature=str(info.signature),
                    error=str(e)
                )

        return transfers

    # -- writes ------------------------------------------------------------

    async def _transfer_instructions(
        self,
        treasury: Pubkey,
        recipient: Pubkey,
        amount: int
    ) -> List[Instruction]:
        if self.mint is None:
            return [transfer(TransferParams(
                from_pubkey=treasury,
                to_pubkey=recipient,
                lamports=amount
            ))]

        instructions = []
        destination = get_associated_token_address(recipient, self.mint)
        account = await self.client.get_account_info(destination, commitment=self.commitment)
        if account.value is None:
            instructions.append(create_associated_token_account(treasury, recipient, self.mint))

        instructions.append(transfer_checked(TransferCheckedParams(
            program_id=TOKEN_PROGRAM_ID,
            source=get_associated_token_address(treasury, self.mint),
            mint=self.mint,
            dest=destination,
            owner=treasury,
            amount=amount,
            decimals=self.decimals,
        )))
        return instructions

    async def submit_transfer(self, treasury: TreasuryHandle, recipient: str, amount: int) -> str:
        """Sign and send one reward transfer; returns the provisional signature."""
        if amount <= 0:
            raise SettlementError(f"Transfer amount must be positive, got {amount}")

        try:
            recipient_pubkey = Pubkey.from_string(recipient)
        except Exception:
            raise SettlementError(f"Invalid recipient address: {recipient}")

        keypair = treasury.keypair or self._load_keypair()
        payer = keypair.pubkey()

        try:
            blockhash_resp = await self.client.get_latest_blockhash(commitment=self.commitment)
            sequence = treasury.next_sequence()

            instructions = await self._transfer_instructions(payer, recipient_pubkey, amount)
            transaction = Transaction.new_signed_with_payer(
                instructions,
                payer,
                [keypair],
                blockhash_resp.value.blockhash
            )

            opts = TxOpts(skip_preflight=False, preflight_commitment=self.commitment)
            response = await self.client.send_transaction(transaction, opts=opts)
        except SettlementError:
            raise
        except Exception as e:
            raise SettlementError(f"Transfer submission failed: {e}")

        signature = str(response.value)
        self.logger.info(
            "Reward transfer submitted",
            recipient=recipient,
            amount=amount,
            sequence=sequence,
            signature=signature
        )
        return signature

    async def wait_for_finality(self, signature: str) -> None:
        """Block until ``signature`` reaches the configured commitment."""
        try:
            confirmation = await self.client.confirm_transaction(
                Signature.from_string(signature),
                commitment=self.commitment,
                sleep_seconds=settings.confirmation_sleep_seconds
            )
        except Exception as e:
            raise SettlementError(f"Finality wait failed: {e}", signature)

        status = confirmation.value[0]
        if status is None:
            raise SettlementError("Transaction status unavailable", signature)
        if status.err is not None:
            raise SettlementError(f"Transaction failed: {status.err}", signature)


# Global ledger instance
_ledger: Optional[SolanaLedger] = None


def get_ledger() -> SolanaLedger:
    """Get or create the global ledger instance."""
    global _ledger
    if _ledger is None:
        _ledger = SolanaLedger()
    return _ledger


async def shutdown_ledger() -> None:
    global _ledger
    if _ledger is not None:
        await _ledger.close()
        _ledger = None
