from __future__ import annotations


class TransportError(RuntimeError):
    """Raised by a delivery transport when a message could not be handed off."""


class EmailDeliveryError(TransportError):
    pass


class SmsDeliveryError(TransportError):
    pass


class TriggerUnauthorized(PermissionError):
    """The dispatch trigger did not present a valid shared secret."""
