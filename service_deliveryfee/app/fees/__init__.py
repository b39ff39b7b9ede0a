"""
Fee calculation package.

Defines the fee rule and weather observation models and the two fee
engines used by the Delivery Fee service:

- models: Enums, dataclasses and request/response models.
- engine: Static engine with base fees and surcharges fixed in code.
- dynamic: Rule-driven engine pricing each term from stored fee rules.
- defaults: Default rule set and one-time store seeding.

Both engines are pure: given the same inputs they return the same fee or
raise the same ForbiddenUsageError.
"""
