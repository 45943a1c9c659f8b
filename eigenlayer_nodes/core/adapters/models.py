from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from eigenlayer_nodes.core.constants.base import DEFAULT_API_BASE_URL

ProviderVendor = Literal["alchemy", "infura", "quicknode", "custom"]
AuthMethod = Literal["privateKey", "mnemonic"]

DEFAULT_DERIVATION_PATH = "m/44'/60'/0'/0/0"

_KEYED_VENDORS = ("alchemy", "infura", "quicknode")


class _CredentialBase(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )


class ConnectionCredential(_CredentialBase):
    """Where to reach the chain: vendor + key or a custom URL, and the network."""

    provider: ProviderVendor = "alchemy"
    api_key: str | None = Field(default=None, repr=False)
    custom_rpc_url: str | None = None
    network: str = "mainnet"

    def missing_fields(self) -> list[str]:
        missing: list[str] = []
        if self.provider in _KEYED_VENDORS and not (self.api_key or "").strip():
            missing.append("api_key")
        if self.provider == "custom" and not (self.custom_rpc_url or "").strip():
            missing.append("custom_rpc_url")
        return missing


class SigningCredential(_CredentialBase):
    auth_method: AuthMethod = "privateKey"
    private_key: str | None = Field(default=None, repr=False)
    mnemonic: str | None = Field(default=None, repr=False)
    derivation_path: str | None = None

    def missing_fields(self) -> list[str]:
        if self.auth_method == "privateKey" and not (self.private_key or "").strip():
            return ["private_key"]
        if self.auth_method == "mnemonic" and not (self.mnemonic or "").strip():
            return ["mnemonic"]
        return []


class ApiCredential(_CredentialBase):
    api_key: str | None = Field(default=None, repr=False)
    base_url: str = DEFAULT_API_BASE_URL
