"""HubSpot CRM adapter."""

from __future__ import annotations

from src.crm.hubspot import CrmError, CrmFailure, CrmOutcome, CrmResult, HubSpotClient, hubspot_client
from src.crm.mapping import FileManifestEntry

__all__ = [
    "CrmError",
    "CrmFailure",
    "CrmOutcome",
    "CrmResult",
    "FileManifestEntry",
    "HubSpotClient",
    "hubspot_client",
]
