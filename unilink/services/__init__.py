"""Domain services: validation rules and persistence for each API area.

Each function takes an ``AsyncSession`` and can be called outside a request
(seeding, imports, tests).
"""
