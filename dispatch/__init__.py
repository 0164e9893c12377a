"""TMS dispatch assistant: shipment enrichment and customer update drafts."""
