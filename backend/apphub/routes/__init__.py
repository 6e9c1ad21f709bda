# Routes package init
"""
AppHub Backend — API Routes Package
====================================

Route Inventory:
    - me.py:      /api/me/...        bookmarks, folders, ratings, developer requests
                  /api/apps/{id}/ratings
    - admin.py:   /api/admin/...     app status, developer request decisions
    - health.py:  GET /health

Routes are thin: extract the acting user, validate the body, call one
service method, shape the response. Business rules live in services.
"""
