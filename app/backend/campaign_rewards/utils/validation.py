"""
Blockchain data validation utilities.
Provides validation functions for Solana addresses and transaction signatures.
"""

from decimal import Decimal, InvalidOperation

from solders.pubkey import Pubkey
from solders.signature import Signature


class SolanaValidator:
    """Validator for Solana blockchain data."""

    @staticmethod
    def is_valid_pubkey(address: str) -> bool:
        """
        Validate if a string is a valid Solana public key.

        Args:
            address: String to validate

        Returns:
            True if valid, False otherwise
        """
        try:
            if not address or len(address) < 32 or len(address) > 44:
                return False
            Pubkey.from_string(address)
            return True
        except Exception:
            return False

    @staticmethod
    def is_valid_signature(signature: str) -> bool:
        """
        Validate if a string is a valid Solana transaction signature.

        Args:
            signature: String to validate

        Returns:
            True if valid, False otherwise
        """
        try:
            if not signature or len(signature) < 80 or len(signature) > 88:
                return False
            Signature.from_string(signature)
            return True
        except Exception:
            return False


def is_valid_solana_address(address: str) -> bool:
    """Validate payout / treasury address format."""
    return SolanaValidator.is_valid_pubkey(address)


def is_valid_token_amount(amount: str) -> bool:
    """A reward amount must be a finite, positive decimal."""
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        return False
    return value.is_finite() and value > 0
