"""Autopayment planning package."""

from flatledger.autopay.planner import AutopaymentPlanner, plan_autopayment

__all__ = ["AutopaymentPlanner", "plan_autopayment"]
