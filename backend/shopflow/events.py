# Overview: In-process change signals, sent after a store write commits.
"""
Subscribers connect with e.g.::

    from shopflow.events import sale_recorded

    @sale_recorded.connect
    def on_sale(sender, sale_id, **extra):
        ...

Signals are sent only after the transaction commits, so a subscriber never
observes a change that was rolled back. Durable, pollable history lives in
the change_events table (see services/ledger_service.py).
"""

from blinker import Namespace

_signals = Namespace()

product_changed = _signals.signal("product-changed")
sale_recorded = _signals.signal("sale-recorded")
sale_item_returned = _signals.signal("sale-item-returned")
sales_repriced = _signals.signal("sales-repriced")
