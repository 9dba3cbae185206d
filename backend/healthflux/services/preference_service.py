"""
HealthFlux Backend — Language Preference
=========================================

What:  Reads and stores the caller's UI language.
How:   Resolution order: the caller's UserPreferences record, then the
       Accept-Language header, then the translator's default.
Who:   GET/PUT /api/i18n/preference
"""

import logging
from typing import Optional, Tuple

from healthflux.exceptions import ValidationError
from healthflux.i18n import Translator
from healthflux.schemas.entities import UserPreferences
from healthflux.services.entity_store import EntityStore

logger = logging.getLogger(__name__)


class LanguagePreferenceService:
    def __init__(self, store: EntityStore, translator: Translator):
        self.store = store
        self.translator = translator

    async def _find(self, user_email: str) -> Optional[UserPreferences]:
        rows = await self.store.filter("UserPreferences", {"user_email": user_email}, limit=1)
        return UserPreferences.model_validate(rows[0]) if rows else None

    async def get_language(self, user_email: str, accept_language: Optional[str] = None) -> Tuple[str, str]:
        """
        Returns:
            (language, source) with source one of "preference", "header", "default".
        """
        preferences = await self._find(user_email)
        if preferences is not None:
            stored = self.translator.normalize(preferences.language)
            if stored:
                return stored, "preference"

        negotiated = self.translator.negotiate(accept_language)
        if negotiated:
            return negotiated, "header"
        return self.translator.default_language, "default"

    async def set_language(self, user_email: str, language: str) -> str:
        """
        Raises:
            ValidationError: language is not supported.
        """
        code = self.translator.normalize(language)
        if code is None:
            raise ValidationError(
                message=f"Unsupported language '{language}'",
                field="language",
                context={"supported": [lang.code for lang in self.translator.languages]},
            )

        preferences = await self._find(user_email)
        if preferences is None:
            await self.store.create("UserPreferences", {"user_email": user_email, "language": code})
        else:
            await self.store.update("UserPreferences", preferences.id, {"language": code})

        logger.info("Language preference for %s set to %s", user_email, code)
        return code
