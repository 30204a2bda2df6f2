"""edelivery: order lifecycle and entitlement-gated file delivery."""

__version__ = "1.0.0"
