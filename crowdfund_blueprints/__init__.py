from crowdfund_blueprints.crowdfund import (
    ArithmeticUnderflow,
    CampaignStatus,
    Crowdfund,
    CrowdfundError,
    CrowdfundErrors,
    FundingClosed,
    FundingNotOpen,
    InvalidActions,
    InvalidAmount,
    InvalidContribution,
    InvalidVersion,
    NoExcessFunds,
    NotAuthorized,
    RefundFailure,
)

__all__ = [
    "ArithmeticUnderflow",
    "CampaignStatus",
    "Crowdfund",
    "CrowdfundError",
    "CrowdfundErrors",
    "FundingClosed",
    "FundingNotOpen",
    "InvalidActions",
    "InvalidAmount",
    "InvalidContribution",
    "InvalidVersion",
    "NoExcessFunds",
    "NotAuthorized",
    "RefundFailure",
]
