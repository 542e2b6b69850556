from enum import Enum

from config import GUARDRAILS


class WithdrawalStrategy(str, Enum):
    FIXED = "fixed"
    DYNAMIC = "dynamic"
    PERCENTAGE = "percentage"
    FOUR_PERCENT = "four_percent"
    INTEREST_ONLY = "interest_only"


def guardrails(last_spend: float, portfolio: float, start_pct: float,
               band: float, max_raise: float, max_cut: float) -> float:
    """
    Guyton-Klinger simplified: if the current withdrawal rate is above
    start_pct*(1+band) => cut, if below start_pct*(1-band) => raise.
    Rates are annual (12 x monthly spend over portfolio). Returns the new monthly spend.
    """
    if portfolio <= 0:
        return max(0.0, last_spend * (1 - max_cut))
    wr = (last_spend * 12) / portfolio
    if wr > start_pct * (1 + band):
        return max(0.0, last_spend * (1 - max_cut))
    elif wr < start_pct * (1 - band):
        return last_spend * (1 + max_raise)
    else:
        return last_spend  # stay the course


class WithdrawalPlanner:
    """
    Net monthly withdrawal for each retirement month. One planner per run:
    DYNAMIC keeps the spend it last settled on.
    """

    def __init__(self, strategy, desired_net: float, balance_at_retirement: float,
                 withdrawal_percentage: float = 4.0, guardrails_cfg: dict = None):
        self.strategy = WithdrawalStrategy(strategy)
        self.desired_net = desired_net
        self.withdrawal_percentage = withdrawal_percentage
        self.cfg = guardrails_cfg or GUARDRAILS
        self.four_percent_monthly = balance_at_retirement * 0.04 / 12
        self.start_pct = (desired_net * 12 / balance_at_retirement) if balance_at_retirement > 0 else 0.0
        self.dynamic_spend = desired_net

    def net_withdrawal(self, month: int, balance: float, growth: float, tax: float) -> float:
        """`month` is 1-based within retirement; `balance` is the balance before this month's growth."""
        s = self.strategy
        if s is WithdrawalStrategy.PERCENTAGE:
            return max(0.0, balance) * (self.withdrawal_percentage / 100) / 12
        if s is WithdrawalStrategy.FOUR_PERCENT:
            return self.four_percent_monthly
        if s is WithdrawalStrategy.INTEREST_ONLY:
            return max(0.0, growth - tax)
        if s is WithdrawalStrategy.DYNAMIC:
            if month > 1 and month % 12 == 1:
                self._review(balance)
            return self.dynamic_spend
        return self.desired_net

    def _review(self, balance: float) -> None:
        # annual review against the starting withdrawal rate, bounded around the desired income
        proposed = guardrails(
            last_spend=self.dynamic_spend,
            portfolio=balance,
            start_pct=self.start_pct,
            band=self.cfg["band"],
            max_raise=self.cfg["max_raise"],
            max_cut=self.cfg["max_cut"],
        )
        floor = self.desired_net * self.cfg["floor_pct"]
        ceiling = self.desired_net * self.cfg["ceiling_pct"]
        self.dynamic_spend = min(max(proposed, floor), ceiling)
