"""Python client for the catalog API."""

from mvdb.client.api_client import CatalogClient
from mvdb.client.config import ProjectConfig, ProjectConfigStore
from mvdb.client.forms import MasterDataForm, SubmitOutcome

__all__ = [
    "CatalogClient",
    "MasterDataForm",
    "ProjectConfig",
    "ProjectConfigStore",
    "SubmitOutcome",
]
