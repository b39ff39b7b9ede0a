"""
Application services.

- delivery_fee: Resolves weather observations and runs the fee engines.
- fee_rules: CRUD over fee rules.
"""
