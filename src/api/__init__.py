"""
FastAPI creator-feed service.

Provides REST API for the aggregated feed and credits ledger:
- GET /feeds - Paginated feed (refreshes stale data on page 1)
- POST /feeds/{id}/save|unsave|report - Engagement actions
- /credits, /users/... - Balances, awards, grants and activity
- GET /health - Service health check
"""

from src.api.app import create_app

__all__ = ["create_app"]
