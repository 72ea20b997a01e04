"""Voice-call front desk: inbound speech webhooks driving a booking conversation."""

__version__ = "0.1.0"
