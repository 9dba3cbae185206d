"""Localization schemas: language list, catalogs and the caller's preference."""

from typing import Any, Dict, List

from pydantic import BaseModel, Field


class LanguageInfo(BaseModel):
    code: str
    name: str
    native_name: str


class LanguagesResponse(BaseModel):
    default: str
    languages: List[LanguageInfo]


class CatalogResponse(BaseModel):
    language: str = Field(description="Language actually served after fallback")
    messages: Dict[str, Any]


class LanguagePreference(BaseModel):
    language: str = Field(min_length=2, max_length=8)


class LanguagePreferenceResponse(BaseModel):
    language: str
    source: str = Field(description="Where the value came from: preference, header or default")
