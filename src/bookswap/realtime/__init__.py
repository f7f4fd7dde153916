"""Live channel bindings and delivery."""

from bookswap.realtime.router import Channel, DeliveryReport, SessionRouter

__all__ = ["Channel", "DeliveryReport", "SessionRouter"]
