"""
Browser driver adapters.

Adapters import their browser engine at module import time, so import the
adapter module directly (``autoheal.drivers.playwright_driver``).
"""
