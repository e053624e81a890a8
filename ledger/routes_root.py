# ledger/routes_root.py
"""
Root / basic endpoints (health).
"""

from fastapi import APIRouter

router = APIRouter()


@router.get("/health")
def health():
    """
    Simple health check.
    """
    return {"ok": True}
