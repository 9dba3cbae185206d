from healthflux.i18n.translator import LANGUAGES, Language, Translator

__all__ = ["LANGUAGES", "Language", "Translator"]
