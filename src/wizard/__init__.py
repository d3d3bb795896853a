"""Client-side quote wizard: state, persistence, submission and the hero form."""

from __future__ import annotations

from src.wizard.client import FilePayload, QuoteApiClient
from src.wizard.hero import HeroQuoteRequest, build_hero_submission, submit_hero_quote
from src.wizard.state import WizardSnapshot
from src.wizard.storage import InMemoryStorage, JsonFileStorage, StoragePort
from src.wizard.store import FileRejectedError, QuoteFormStore

__all__ = [
    "FilePayload",
    "FileRejectedError",
    "HeroQuoteRequest",
    "InMemoryStorage",
    "JsonFileStorage",
    "QuoteApiClient",
    "QuoteFormStore",
    "StoragePort",
    "WizardSnapshot",
    "build_hero_submission",
    "submit_hero_quote",
]
