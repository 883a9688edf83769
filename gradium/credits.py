"""Credit balance REST resource."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .client import Gradium

CREDITS_PATH = "usages/credits"


@dataclass(slots=True)
class CreditsSummary:
    """Credit balance of the current billing period."""

    remaining_credits: float
    allocated_credits: float
    billing_period: str
    next_rollover_date: str | None = None
    plan_name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "remaining_credits": self.remaining_credits,
            "allocated_credits": self.allocated_credits,
            "billing_period": self.billing_period,
            "next_rollover_date": self.next_rollover_date,
            "plan_name": self.plan_name,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> CreditsSummary:
        return cls(
            remaining_credits=d["remaining_credits"],
            allocated_credits=d["allocated_credits"],
            billing_period=d.get("billing_period", ""),
            next_rollover_date=d.get("next_rollover_date"),
            plan_name=d.get("plan_name"),
        )


class Credits:
    """Credit balance resource of a ``Gradium`` client."""

    def __init__(self, client: Gradium) -> None:
        self._client = client

    async def get(self) -> CreditsSummary:
        """Fetch the credit balance of the authenticated subscription."""
        response = await self._client._request("GET", CREDITS_PATH)
        return CreditsSummary.from_dict(response.json())


__all__ = ["Credits", "CreditsSummary"]
