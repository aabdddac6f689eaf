# Routes package init
"""
Guildhall Backend — API Routes Package
========================================

Route Inventory:
    - connections.py:    /api/connections/...     (connection ledger)
    - notifications.py:  /api/notifications/...   (addressee feed)
    - admin.py:          /api/admin/...           (role-gated moderation views)
    - health.py:         GET /health              (service health check)

Routes stay thin: resolve the acting member, call one service method,
shape the response. Business rules live in services.
"""
