"""
HealthFlux Backend — API Routes Package
========================================

Route Inventory:
    - documents.py:   POST /api/documents/search, POST /api/documents,
                      POST /api/documents/{id}/summary, GET /api/files/{path}
    - assistant.py:   POST /api/meals/analyze, POST /api/insurance/chat
    - reports.py:     POST /api/reports
    - share_links.py: POST /api/share-links
    - admin.py:       POST /api/admin/bootstrap
    - i18n.py:        GET /api/i18n/languages, GET /api/i18n/catalog,
                      GET|PUT /api/i18n/preference
    - health.py:      GET /health (no login required)

Routes stay thin: parse the request, call one service, shape the response.
Every /api router resolves the caller's identity before anything else.
"""
