"""Accounts, session tokens and route guards."""
