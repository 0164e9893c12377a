"""Group processed shipments per customer."""

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from dispatch.services.shipments import ProcessedShipment

UNKNOWN_CUSTOMER = "Unknown"


@dataclass
class CustomerGroup:
    """All shipments for one customer, in processing order."""

    customer: str
    shipments: list[ProcessedShipment] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "customer": self.customer,
            "shipments": [shipment.to_dict() for shipment in self.shipments],
        }


def group_by_customer(shipments: Sequence[ProcessedShipment]) -> list[CustomerGroup]:
    """Group shipments by customer name, in first-seen order.

    Names are used as-is (the processor already cleaned them); a blank name
    is grouped under "Unknown".
    """
    groups: dict[str, CustomerGroup] = {}
    for shipment in shipments:
        customer = shipment.customer or UNKNOWN_CUSTOMER
        if customer not in groups:
            groups[customer] = CustomerGroup(customer=customer)
        groups[customer].shipments.append(shipment)
    return list(groups.values())
