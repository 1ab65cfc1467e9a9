"""Core domain package for whoiswatch.

Core contains reconciliation, sweep orchestration, and cooldown logic without
any WHOIS, email, or storage-specific code, keeping the business logic
portable.
"""
