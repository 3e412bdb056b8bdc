# ============================================================================
# Gift Fund Orchestrator v1.0.0
# Funding Module - Authorize-Then-Act and Gift Issuance
# ============================================================================
#
# Reliability Level: FUNDS-CRITICAL
#
# Components:
#   - percentage_funded: Fixed-point percentage of a fund
#   - generate_code / generate_batch: CSPRNG redeem codes
#   - parse_batch: Recipient batch parser
#   - AllowanceGate: Fresh allowance check, fail closed
#   - FundingOrchestrator: IDLE -> ... -> CONFIRMED | FAILED
#   - GiftBatchIssuer: One authorization, per-recipient outcomes
#   - FundRegistry: Fund views built from ledger reads
#
# ============================================================================

from giftfund.funding.models import (
    FundKind,
    Fund,
    AllowanceRecord,
    PendingTransfer,
    Recipient,
    Gift,
)
from giftfund.funding.percentage import (
    percentage_funded,
    clamped_percentage_funded,
    funding_required,
)
from giftfund.funding.redeem_codes import (
    generate_code,
    generate_batch,
    RedeemCodeBook,
    redact_code,
)
from giftfund.funding.recipient_parser import (
    parse_batch,
    recipient_template,
    load_batch_file,
)
from giftfund.funding.allowance_gate import AllowanceGate, AllowanceCheck
from giftfund.funding.state_machine import FundingState, FundingLifecycle
from giftfund.funding.orchestrator import (
    FundingAction,
    FundingResult,
    FundingOrchestrator,
    add_funds_action,
    increase_funding_action,
    create_bespoke_fund_action,
    create_matching_fund_action,
    create_gift_action,
)
from giftfund.funding.gift_issuer import (
    GiftStatus,
    RecipientOutcome,
    BatchReport,
    GiftBatchIssuer,
)
from giftfund.funding.fund_registry import FundRegistry
from giftfund.funding.gift_notice import GiftNotice, notices_for_report

__all__ = [
    'FundKind',
    'Fund',
    'AllowanceRecord',
    'PendingTransfer',
    'Recipient',
    'Gift',
    'percentage_funded',
    'clamped_percentage_funded',
    'funding_required',
    'generate_code',
    'generate_batch',
    'RedeemCodeBook',
    'redact_code',
    'parse_batch',
    'recipient_template',
    'load_batch_file',
    'AllowanceGate',
    'AllowanceCheck',
    'FundingState',
    'FundingLifecycle',
    'FundingAction',
    'FundingResult',
    'FundingOrchestrator',
    'add_funds_action',
    'increase_funding_action',
    'create_bespoke_fund_action',
    'create_matching_fund_action',
    'create_gift_action',
    'GiftStatus',
    'RecipientOutcome',
    'BatchReport',
    'GiftBatchIssuer',
    'FundRegistry',
    'GiftNotice',
    'notices_for_report',
]
