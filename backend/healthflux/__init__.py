"""
HealthFlux Backend — Application Package
=========================================

What: Health-records API: document search and upload, meal-photo analysis,
      PDF/CSV reports, insurance Q&A, share links, admin bootstrap, i18n.
Who:  Imported by uvicorn (`healthflux.main:app`), Alembic, and pytest.

Architecture Note:
    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← auth gate, request/response shaping
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← fetch, prompt assembly, formatting
    ├─────────────────────────────────────┤
    │   Entity Store / LLM / Email / PDF  │  ← external collaborators
    └─────────────────────────────────────┘

    Every handler is a thin pass: resolve the caller, read entity records,
    optionally enrich through the LLM or render a PDF, return JSON.
"""

__version__ = "1.0.0"
