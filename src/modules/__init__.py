"""Business modules for TravelBuddy.

Each module is self-contained with its own schemas, services and
domain logic; infrastructure adapters live under src/infrastructure.
"""
