"""
Services Package

The reconciliation and notification pipeline:
- reconciler: snapshot vs. stored record -> new record + optional transition
- notification_dispatcher: transition -> every enabled channel
- exchange_processor: one exchange through fetch/reconcile/persist/notify
- cycle_scheduler: the perpetual loop over all enabled exchanges
"""
