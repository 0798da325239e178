from typing import NamedTuple

from hathor import (
    Address,
    Amount,
    Blueprint,
    BlueprintId,
    CallerId,
    Context,
    NCDepositAction,
    NCFail,
    NCWithdrawalAction,
    TokenUid,
    export,
    public,
    view,
)

# Constants
INITIAL_VERSION = "1.0.0"
PERCENT = 100


class CampaignStatus:
    """Campaign phases"""

    CLOSED = 0  # Not accepting contributions
    OPEN = 1  # Accepting contributions


class CrowdfundErrors:
    """Common error messages"""

    UNAUTHORIZED = "Only the campaign owner can perform this action"
    ZERO_GOAL = "Goal must be greater than zero"
    ZERO_MINIMUM = "Minimum contribution must be greater than zero"
    NOT_OPEN = "Campaign is not open"
    BELOW_MIN = "Contribution must exceed the minimum contribution"
    ABOVE_GOAL = "Contribution would exceed the funding goal"
    GOAL_EXCEEDED = "Total contributed already exceeds the goal"
    NOTHING_TO_REFUND = "No contribution to refund"
    NO_EXCESS = "No excess funds to withdraw"
    UNDERFLOW = "Arithmetic underflow"
    EXPECTED_DEPOSIT = "Expected deposit action"
    EXPECTED_WITHDRAWAL = "Expected withdrawal action"
    INVALID_WITHDRAWAL = "Invalid withdrawal amount"
    INVALID_VERSION = "Invalid contract version"


class CrowdfundError(NCFail):
    """Base error for Crowdfund operations."""

    pass


class NotAuthorized(CrowdfundError):
    """Raised when a non-owner calls an owner-only method."""

    pass


class InvalidAmount(CrowdfundError):
    """Raised when a goal or minimum contribution of zero is supplied."""

    pass


class InvalidContribution(CrowdfundError):
    """Raised when a contribution is below minimum, exceeds the goal or the campaign is closed."""

    pass


class FundingClosed(CrowdfundError):
    """Raised when an operation that needs an open campaign runs while closed."""

    pass


class FundingNotOpen(CrowdfundError):
    """Raised when closing early a campaign that is not open."""

    pass


class RefundFailure(CrowdfundError):
    """Raised when there is nothing to refund or the total is above the goal."""

    pass


class NoExcessFunds(CrowdfundError):
    """Raised when the total does not exceed the goal."""

    pass


class ArithmeticUnderflow(CrowdfundError):
    """Raised when a subtraction would produce a negative amount."""

    pass


class InvalidActions(CrowdfundError):
    """Raised when the deposit or withdrawal action does not match the operation."""

    pass


class InvalidVersion(CrowdfundError):
    """Raised when an upgrade version is malformed or not newer."""

    pass


class CrowdfundSummary(NamedTuple):
    """Core campaign fields."""

    goal: int
    total_contributed: int
    status: int
    minimum_contribution: int


class CrowdfundCampaignInfo(NamedTuple):
    """Campaign snapshot for frontend."""

    owner: str
    token_uid: str
    goal: int
    total_contributed: int
    status: int
    minimum_contribution: int
    remaining_goal: int
    progress: int
    contributors: int
    excess_withdrawn: int
    version: str


class CrowdfundContributorInfo(NamedTuple):
    """Contributor-specific information."""

    contributed: int
    ranking: int
    percentage_of_goal: int
    capacity: int
    refund_eligible: bool
    status: str


@export
class Crowdfund(Blueprint):
    """Blueprint for a single crowdfunding campaign.

    The life cycle of contracts using this blueprint is the following:

    1. [Owner] Create the contract with a goal and a minimum contribution.
    2. [Owner] `open_campaign()`.
    3. [User] `contribute()` while open, `refund()` while the goal is unmet,
       `reset_contribution()` or `withdraw_contribution()` while open.
    4. [Owner] `close_campaign()` or `close_early()`, and `withdraw_excess()`
       when the goal was lowered below the total.

    Every contributor balance change moves `total_contributed` by the same
    amount in the same call, so the contract balance always equals
    `total_contributed`.
    """

    # Campaign configuration
    owner: CallerId  # Fixed at creation
    token_uid: TokenUid  # Token accepted for contributions
    goal: Amount  # Target total, always > 0
    minimum_contribution: Amount  # Contributions must be strictly above this

    # Campaign state
    status: int
    total_contributed: Amount  # Sum of recorded contributions
    excess_withdrawn: Amount  # Released to the owner by withdraw_excess
    contributors_count: int  # Unique contributors ever seen

    # Contributor tracking
    contributions: dict[Address, Amount]

    # Upgrades
    contract_version: str

    @public
    def initialize(
        self,
        ctx: Context,
        token_uid: TokenUid,
        goal: Amount,
        minimum_contribution: Amount,
    ) -> None:
        """Create the campaign. The caller becomes its owner."""
        if goal <= 0:
            raise InvalidAmount(CrowdfundErrors.ZERO_GOAL)
        if minimum_contribution <= 0:
            raise InvalidAmount(CrowdfundErrors.ZERO_MINIMUM)

        self.owner = ctx.caller_id
        self.token_uid = token_uid
        self.goal = goal
        self.minimum_contribution = minimum_contribution

        self.status = CampaignStatus.CLOSED
        self.total_contributed = Amount(0)
        self.excess_withdrawn = Amount(0)
        self.contributors_count = 0
        self.contributions = {}

        self.contract_version = INITIAL_VERSION

    def _only_owner(self, ctx: Context) -> None:
        if ctx.caller_id != self.owner:
            raise NotAuthorized(CrowdfundErrors.UNAUTHORIZED)

    def _balance_of(self, address: Address) -> Amount:
        return self.contributions.get(address, Amount(0))

    def _checked_sub(self, a: int, b: int) -> Amount:
        """Subtract amounts, failing instead of going negative."""
        if b > a:
            raise ArithmeticUnderflow(CrowdfundErrors.UNDERFLOW)
        return Amount(a - b)

    def _remaining_goal(self) -> Amount:
        return Amount(max(0, self.goal - self.total_contributed))

    def _goal_met(self) -> bool:
        return self.total_contributed >= self.goal

    def _percentage(self, part: int, whole: int) -> int:
        if whole == 0:
            return 0
        return part * PERCENT // whole

    def _can_contribute(self, amount: int) -> bool:
        return (
            self.status == CampaignStatus.OPEN
            and amount > self.minimum_contribution
            and self.total_contributed + amount <= self.goal
        )

    def _get_single_deposit_action(self, ctx: Context) -> NCDepositAction:
        """Get the single deposit action for the campaign token."""
        action = ctx.get_single_action(self.token_uid)
        if not isinstance(action, NCDepositAction):
            raise InvalidActions(CrowdfundErrors.EXPECTED_DEPOSIT)
        return action

    def _validate_withdrawal(self, ctx: Context, amount: Amount) -> None:
        """Check that the caller withdraws exactly `amount` of the campaign token."""
        action = ctx.get_single_action(self.token_uid)
        if not isinstance(action, NCWithdrawalAction):
            raise InvalidActions(CrowdfundErrors.EXPECTED_WITHDRAWAL)
        if action.amount != amount:
            raise InvalidActions(
                f"{CrowdfundErrors.INVALID_WITHDRAWAL}. Expected {amount}"
            )

    def _release_contribution(self, ctx: Context, address: Address) -> Amount:
        """Zero a contributor balance and take it out of the total."""
        balance = self._balance_of(address)
        new_total = self._checked_sub(self.total_contributed, balance)
        self._validate_withdrawal(ctx, balance)

        self.contributions[address] = Amount(0)
        self.total_contributed = new_total
        return balance

    def _release_open_contribution(self, ctx: Context) -> Amount:
        """Shared transition behind reset_contribution and withdraw_contribution."""
        if self.status != CampaignStatus.OPEN:
            raise FundingClosed(CrowdfundErrors.NOT_OPEN)

        contributor = Address(ctx.caller_id)
        if self._balance_of(contributor) == 0:
            raise RefundFailure(CrowdfundErrors.NOTHING_TO_REFUND)

        return self._release_contribution(ctx, contributor)

    def _parse_version(self, version: str) -> tuple[int, int, int]:
        parts = version.split(".")
        if len(parts) != 3 or not all(part.isdigit() for part in parts):
            raise InvalidVersion(f"{CrowdfundErrors.INVALID_VERSION}: {version}")
        return (int(parts[0]), int(parts[1]), int(parts[2]))

    # Owner operations

    @public
    def set_goal(self, ctx: Context, goal: Amount) -> None:
        """Change the funding goal (owner only)."""
        self._only_owner(ctx)
        if goal <= 0:
            raise InvalidAmount(CrowdfundErrors.ZERO_GOAL)
        self.goal = goal

    @public
    def set_minimum_contribution(self, ctx: Context, new_minimum: Amount) -> None:
        """Change the minimum contribution (owner only)."""
        self._only_owner(ctx)
        if new_minimum <= 0:
            raise InvalidAmount(CrowdfundErrors.ZERO_MINIMUM)
        self.minimum_contribution = new_minimum

    @public
    def open_campaign(self, ctx: Context) -> None:
        """Start accepting contributions (owner only)."""
        self._only_owner(ctx)
        self.status = CampaignStatus.OPEN

    @public
    def close_campaign(self, ctx: Context) -> None:
        """Stop accepting contributions (owner only)."""
        self._only_owner(ctx)
        self.status = CampaignStatus.CLOSED

    @public
    def close_early(self, ctx: Context) -> None:
        """Close a campaign that is currently open (owner only)."""
        self._only_owner(ctx)
        if self.status != CampaignStatus.OPEN:
            raise FundingNotOpen(CrowdfundErrors.NOT_OPEN)
        self.status = CampaignStatus.CLOSED

    @public(allow_withdrawal=True)
    def withdraw_excess(self, ctx: Context) -> Amount:
        """Withdraw everything above the goal (owner only).

        The total is clamped down to the goal. Individual balances are not
        touched, the withdrawn amount is tracked in `excess_withdrawn`.
        """
        self._only_owner(ctx)

        excess = Amount(max(0, self.total_contributed - self.goal))
        if excess == 0:
            raise NoExcessFunds(CrowdfundErrors.NO_EXCESS)

        self._validate_withdrawal(ctx, excess)

        self.total_contributed = self._checked_sub(self.total_contributed, excess)
        self.excess_withdrawn = Amount(self.excess_withdrawn + excess)
        return excess

    @public
    def upgrade_contract(
        self, ctx: Context, new_blueprint_id: BlueprintId, new_version: str
    ) -> None:
        """Upgrade this contract to a new blueprint version.

        Args:
            ctx: Transaction context
            new_blueprint_id: The blueprint ID to upgrade to
            new_version: Version string for the new blueprint (e.g., "1.1.0")

        Raises:
            NotAuthorized: If caller is not the owner
            InvalidVersion: If the version is malformed or not newer
        """
        self._only_owner(ctx)

        if self._parse_version(new_version) <= self._parse_version(
            self.contract_version
        ):
            raise InvalidVersion(
                f"{CrowdfundErrors.INVALID_VERSION}: {new_version} is not newer than {self.contract_version}"
            )

        self.contract_version = new_version
        self.syscall.change_blueprint(new_blueprint_id)

    # Contributor operations

    @public(allow_deposit=True)
    def contribute(self, ctx: Context) -> None:
        """Contribute the deposited amount to the campaign."""
        action = self._get_single_deposit_action(ctx)
        amount = Amount(action.amount)

        if self.status != CampaignStatus.OPEN:
            raise InvalidContribution(CrowdfundErrors.NOT_OPEN)
        if amount <= self.minimum_contribution:
            raise InvalidContribution(CrowdfundErrors.BELOW_MIN)
        if self.total_contributed + amount > self.goal:
            raise InvalidContribution(CrowdfundErrors.ABOVE_GOAL)

        contributor = Address(ctx.caller_id)
        if contributor not in self.contributions:
            self.contributors_count += 1

        self.contributions[contributor] = Amount(
            self._balance_of(contributor) + amount
        )
        self.total_contributed = Amount(self.total_contributed + amount)

    @public(allow_withdrawal=True)
    def refund(self, ctx: Context) -> Amount:
        """Take back the whole contribution while the goal is not met."""
        contributor = Address(ctx.caller_id)
        if self.total_contributed > self.goal:
            raise RefundFailure(CrowdfundErrors.GOAL_EXCEEDED)
        if self._balance_of(contributor) == 0:
            raise RefundFailure(CrowdfundErrors.NOTHING_TO_REFUND)

        return self._release_contribution(ctx, contributor)

    @public(allow_withdrawal=True)
    def reset_contribution(self, ctx: Context) -> Amount:
        """Take back the whole contribution while the campaign is open."""
        return self._release_open_contribution(ctx)

    @public(allow_withdrawal=True)
    def withdraw_contribution(self, ctx: Context) -> Amount:
        """Take back the whole contribution while the campaign is open."""
        return self._release_open_contribution(ctx)

    # Campaign views

    @view
    def is_goal_met(self) -> bool:
        return self._goal_met()

    @view
    def get_total_contributed(self) -> Amount:
        return self.total_contributed

    @view
    def get_goal(self) -> Amount:
        return self.goal

    @view
    def get_status(self) -> int:
        return self.status

    @view
    def get_minimum_contribution(self) -> Amount:
        return self.minimum_contribution

    @view
    def get_remaining_goal(self) -> Amount:
        """Amount still needed to reach the goal, zero once met."""
        return self._remaining_goal()

    @view
    def get_remaining_contribution_capacity(self) -> Amount:
        return self._remaining_goal()

    @view
    def get_remaining_funding_goal(self) -> int:
        """Signed distance to the goal, negative when the total is above it."""
        return self.goal - self.total_contributed

    @view
    def get_campaign_summary(self) -> CrowdfundSummary:
        return CrowdfundSummary(
            goal=self.goal,
            total_contributed=self.total_contributed,
            status=self.status,
            minimum_contribution=self.minimum_contribution,
        )

    @view
    def get_contribution_percentage(self) -> int:
        """Total contributed as a whole percentage of the goal."""
        return self._percentage(self.total_contributed, self.goal)

    @view
    def get_campaign_progress(self) -> int:
        return self._percentage(self.total_contributed, self.goal)

    @view
    def get_funding_goal_progress(self) -> int:
        return self._percentage(self.total_contributed, self.goal)

    @view
    def is_funding_active(self) -> bool:
        return self.status == CampaignStatus.OPEN

    @view
    def is_campaign_fully_funded(self) -> int:
        return 1 if self._goal_met() else 0

    @view
    def get_status_string(self) -> str:
        if self.status == CampaignStatus.OPEN:
            return "Open"
        return "Closed"

    @view
    def get_funding_status(self) -> str:
        """Funded once the goal is met, otherwise Active or Inactive by status."""
        if self._goal_met():
            return "Funded"
        if self.status == CampaignStatus.OPEN:
            return "Active"
        return "Inactive"

    @view
    def get_contract_version(self) -> str:
        return self.contract_version

    @view
    def get_campaign_info(self) -> CrowdfundCampaignInfo:
        """Get a snapshot of the whole campaign."""
        return CrowdfundCampaignInfo(
            owner=self.owner.hex(),
            token_uid=self.token_uid.hex(),
            goal=self.goal,
            total_contributed=self.total_contributed,
            status=self.status,
            minimum_contribution=self.minimum_contribution,
            remaining_goal=self._remaining_goal(),
            progress=self._percentage(self.total_contributed, self.goal),
            contributors=self.contributors_count,
            excess_withdrawn=self.excess_withdrawn,
            version=self.contract_version,
        )

    # Contributor views

    @view
    def is_owner(self, address: Address) -> bool:
        return address == self.owner

    @view
    def get_user_contribution(self, address: Address) -> Amount:
        return self._balance_of(address)

    @view
    def get_user_contribution_balance(self, address: Address) -> Amount:
        return self._balance_of(address)

    @view
    def is_contribution_eligible(self, address: Address, amount: Amount) -> bool:
        """Whether `contribute` would accept `amount` right now."""
        return self._can_contribute(amount)

    @view
    def is_refund_eligible(self, address: Address) -> bool:
        return not self._goal_met() and self._balance_of(address) > 0

    @view
    def can_withdraw_refund(self, address: Address) -> bool:
        """Refund eligible and the campaign is already closed."""
        return (
            not self._goal_met()
            and self._balance_of(address) > 0
            and self.status == CampaignStatus.CLOSED
        )

    @view
    def get_contribution_ranking(self, address: Address) -> int:
        """Share of the current total held by `address`, in percent."""
        return self._percentage(self._balance_of(address), self.total_contributed)

    @view
    def get_user_contribution_percentage(self, address: Address) -> int:
        """Balance of `address` as a percentage of the goal."""
        return self._percentage(self._balance_of(address), self.goal)

    @view
    def get_contribution_capacity(self, address: Address) -> Amount:
        return Amount(max(0, self._remaining_goal() - self._balance_of(address)))

    @view
    def is_user_above_minimum_contribution(self, address: Address) -> bool:
        return self._balance_of(address) > self.minimum_contribution

    @view
    def is_user_fully_contributed(self, address: Address) -> bool:
        return self._balance_of(address) >= self.goal

    @view
    def has_user_exceeded_contribution_limit(self, address: Address) -> bool:
        return self._balance_of(address) > self.goal

    @view
    def get_user_status(self, address: Address) -> int:
        return 1 if self._balance_of(address) > 0 else 0

    @view
    def get_user_contribution_status(self, address: Address) -> str:
        if self._balance_of(address) > 0:
            return "Contributed"
        return "No Contribution"

    @view
    def get_contributor_info(self, address: Address) -> CrowdfundContributorInfo:
        """Get contributor-specific information."""
        balance = self._balance_of(address)
        return CrowdfundContributorInfo(
            contributed=balance,
            ranking=self._percentage(balance, self.total_contributed),
            percentage_of_goal=self._percentage(balance, self.goal),
            capacity=max(0, self._remaining_goal() - balance),
            refund_eligible=not self._goal_met() and balance > 0,
            status="Contributed" if balance > 0 else "No Contribution",
        )
