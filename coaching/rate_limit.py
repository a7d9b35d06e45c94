"""
rate_limit.py: Per-IP request limits for public registration
=============================================================
Uses slowapi to cap how often one address can create accounts.
Login attempts go through ``coaching.auth.throttle`` instead, which
reports remaining attempts and can share counters through Redis.
"""
from __future__ import annotations

from slowapi import Limiter

from .auth.dependencies import client_key

limiter = Limiter(key_func=client_key)
