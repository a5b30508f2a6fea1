"""
Request dependencies
"""

from typing import Optional

from fastapi import Header, HTTPException

from ..engine import FinancingEngine

_engine: Optional[FinancingEngine] = None


def get_engine() -> FinancingEngine:
    """Shared engine, created on first use from the global configuration"""
    global _engine
    if _engine is None:
        _engine = FinancingEngine()
    return _engine


def get_owner_id(x_owner_id: Optional[str] = Header(None)) -> str:
    """Owner already authenticated upstream, forwarded in X-Owner-Id"""
    if not x_owner_id:
        raise HTTPException(status_code=401, detail="Missing X-Owner-Id header")
    return x_owner_id
