"""Port interfaces - Layer boundary contracts.

Core Ports:
    ObjectStorePort    - Polymorphic per-organization document store
    DirectoryPort      - Organizations, user bindings and roles
    CredentialResolver - Per-organization provider secrets
    ProviderAdapter    - One outbound call to a third-party provider
    LLMCallPort        - LLM chat completions
    StoragePort        - TTL key/value cache
"""

from src.ports.credential_port import CredentialResolver
from src.ports.directory_port import DirectoryPort
from src.ports.llm_call_port import LLMCallPort
from src.ports.object_store_port import ObjectStorePort
from src.ports.provider_port import ProviderAdapter
from src.ports.storage_port import StoragePort

__all__ = [
    "CredentialResolver",
    "DirectoryPort",
    "LLMCallPort",
    "ObjectStorePort",
    "ProviderAdapter",
    "StoragePort",
]
