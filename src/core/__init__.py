"""Core engine package for telewiper.

Core contains the cursor, message index, scheduler and wipe protocol without
any Telegram or HTTP-specific code, keeping the engine testable with fakes.
"""
