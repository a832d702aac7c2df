"""
Bills, payments and the payment event log.

A bill covers a customer's DELIVERED cylinder entries for a date range plus
whatever remained unpaid on the previous bill. Payments reduce the remaining
amount and every bill/payment change is written to ``payment_logs``.
"""
