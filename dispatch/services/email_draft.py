"""Per-customer shipment update emails."""

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from typing import Any

from dispatch.services.geocoding import NOT_AVAILABLE
from dispatch.services.grouping import CustomerGroup

CURRENTLY_UNAVAILABLE = "Currently Unavailable"
DRY_LOAD = "Dry"

GREETING = "Good afternoon,\n\nPlease see below for today's shipment updates:\n\n"
CLOSING = (
    "Please let me know if you have any questions or need additional information.\n\n"
    "Best regards"
)


@dataclass(frozen=True)
class EmailDraft:
    """A ready-to-send update email for one customer."""

    customer: str
    subject: str
    body: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {"customer": self.customer, "subject": self.subject, "body": self.body}


def _display(value: str) -> str:
    return CURRENTLY_UNAVAILABLE if value == NOT_AVAILABLE else value


def build_subject(customer: str, on: date | None = None) -> str:
    """Subject line, e.g. 'Vital Farms - Oct 18, 2026'."""
    on = on or date.today()
    return f"{customer} - {on.strftime('%b')} {on.day}, {on.year}"


def build_email_body(group: CustomerGroup) -> str:
    """Email body listing every load for the customer."""
    body = GREETING
    for index, shipment in enumerate(group.shipments, start=1):
        temp = shipment.reefer_temp.strip() if shipment.reefer_temp else ""
        body += f"Load {index}:\n"
        body += f"  • PO #: {shipment.po_number}\n"
        body += f"  • Current Location: {_display(shipment.current_location)}\n"
        body += f"  • ETA: {_display(shipment.eta)}\n"
        body += f"  • Reefer Temp: {temp or DRY_LOAD}\n\n"
    return body + CLOSING


def build_drafts(groups: Sequence[CustomerGroup], on: date | None = None) -> list[EmailDraft]:
    """One draft per customer group, in group order."""
    return [
        EmailDraft(
            customer=group.customer,
            subject=build_subject(group.customer, on),
            body=build_email_body(group),
        )
        for group in groups
    ]
