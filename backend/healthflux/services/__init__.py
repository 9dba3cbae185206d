# Services package init
"""
HealthFlux Backend — Services Layer
====================================

What:  Business logic between the routes (HTTP) and the collaborators
       (entity store, Gemini, email, file storage).
How:   Services take their collaborators in the constructor and are built
       per request by the providers in healthflux.dependencies.

Service Inventory:
    - EntityStore (abstract) / SqlEntityStore: filter, create, update over entity collections
    - LLMService (abstract) / GeminiService: text, JSON and image completions
    - EmailSender (abstract) / ResendEmailService: share-link notifications
    - AuthService: session token verification
    - FileService: upload validation, storage and lookup
    - DocumentService: search, upload, summaries
    - MealAnalysisService, InsuranceChatService: LLM-backed assistants
    - ReportService: PDF and CSV health reports
    - ShareLinkService: share links and their notification email
    - AdminBootstrapService, LanguagePreferenceService
"""
