"""Reminder delivery to hosting platforms.

Modules:
- client.py: DeliveryClient (breaker, token cache, rate limit, error reclassification)
- errors.py: tagged DeliveryError hierarchy
- platform.py: DeliveryPlatform interface
- github.py / gitlab.py: platform adapters
- token_cache.py: per-repository credential cache
"""
