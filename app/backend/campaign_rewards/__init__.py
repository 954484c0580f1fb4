"""
Campaign Rewards Backend

Tracks TikTok video submissions against campaign eligibility criteria and
pays token rewards to winners from a Solana treasury:
- Submission intake and eligibility evaluation
- Batch payout settlement with at-most-once transfers
- Ledger reconciliation for unrecorded settlements
- REST API and operator CLI
"""

__version__ = "0.1.0"
