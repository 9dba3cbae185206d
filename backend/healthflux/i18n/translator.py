"""
HealthFlux Backend — Translator
================================

What:  UI translation catalogs (en, hi, te) with fallback to the default
       language.
How:   One JSON catalog per language under i18n/locales/. Catalogs are
       nested dicts addressed by dotted keys ("common.save"). A catalog
       served for a non-default language is deep-merged over the default
       catalog, so keys missing from a translation fall back to the default.
Who:   Built once in the app lifespan and stored on app.state; the i18n
       routes and LanguagePreferenceService receive it by injection.
"""

import copy
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)

LOCALES_DIR = Path(__file__).parent / "locales"


@dataclass(frozen=True)
class Language:
    code: str
    name: str
    native_name: str


LANGUAGES = (
    Language("en", "English", "English"),
    Language("hi", "Hindi", "हिंदी"),
    Language("te", "Telugu", "తెలుగు"),
)


def _deep_merge(base: Dict[str, Any], overlay: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in overlay.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class Translator:
    """
    Args:
        catalogs: language code → nested message dict.
        default_language: Must be present in `catalogs`.
        languages: Display metadata for the supported languages.
    """

    def __init__(
        self,
        catalogs: Dict[str, Dict[str, Any]],
        default_language: str = "en",
        languages: Iterable[Language] = LANGUAGES,
    ):
        if default_language not in catalogs:
            raise ValueError(f"No catalog for default language '{default_language}'")
        self.default_language = default_language
        self._catalogs = catalogs
        self._languages = [lang for lang in languages if lang.code in catalogs]
        self._merged: Dict[str, Dict[str, Any]] = {}

    @classmethod
    def from_directory(
        cls,
        directory: Path = LOCALES_DIR,
        default_language: str = "en",
        languages: Iterable[Language] = LANGUAGES,
    ) -> "Translator":
        """Load <code>.json for every known language found in `directory`."""
        catalogs = {}
        for language in languages:
            path = Path(directory) / f"{language.code}.json"
            if not path.is_file():
                logger.warning("Missing locale catalog: %s", path)
                continue
            with open(path, encoding="utf-8") as f:
                catalogs[language.code] = json.load(f)
        logger.info("Loaded locale catalogs: %s", sorted(catalogs))
        return cls(catalogs, default_language=default_language, languages=languages)

    @property
    def languages(self) -> List[Language]:
        return list(self._languages)

    def normalize(self, code: Optional[str]) -> Optional[str]:
        """Supported language for a code such as "hi" or "hi-IN", else None."""
        if not code:
            return None
        primary = code.strip().lower().replace("_", "-").split("-")[0]
        return primary if primary in self._catalogs else None

    def resolve(self, code: Optional[str]) -> str:
        return self.normalize(code) or self.default_language

    def catalog(self, code: Optional[str]) -> Tuple[str, Dict[str, Any]]:
        """
        Returns:
            (language actually served, catalog with default-language fallbacks)
        """
        language = self.resolve(code)
        if language not in self._merged:
            base = self._catalogs[self.default_language]
            if language == self.default_language:
                self._merged[language] = copy.deepcopy(base)
            else:
                self._merged[language] = _deep_merge(base, self._catalogs[language])
        return language, copy.deepcopy(self._merged[language])

    def negotiate(self, accept_language: Optional[str]) -> Optional[str]:
        """Best supported language from an Accept-Language header, by q-value."""
        if not accept_language:
            return None
        candidates = []
        for position, part in enumerate(accept_language.split(",")):
            tag, _, params = part.strip().partition(";")
            quality = 1.0
            params = params.strip()
            if params.startswith("q="):
                try:
                    quality = float(params[2:])
                except ValueError:
                    quality = 0.0
            if tag and quality > 0:
                candidates.append((-quality, position, tag))
        for _, _, tag in sorted(candidates):
            language = self.normalize(tag)
            if language:
                return language
        return None
