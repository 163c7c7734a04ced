"""
Supply Kernel

Role-gated workflow library for branch supply requests:
- Supply request approval lifecycle (branch -> admin -> supplier)
- Order creation on supplier confirmation (atomic, at most one per request)
- Shipment tracking to delivery
- Compare-and-swap status writes
- Transition audit trail and event stream
"""

__version__ = "0.1.0"
