from __future__ import annotations

from typing import Any

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount
from loguru import logger
from web3 import AsyncWeb3

from eigenlayer_nodes.core.adapters.models import (
    DEFAULT_DERIVATION_PATH,
    SigningCredential,
)
from eigenlayer_nodes.core.errors import ConfigurationError

_DEFAULT_EVM_ACCOUNT_PATH_TEMPLATE = "m/44'/60'/0'/0/{index}"

_HD_WALLET_ENABLED = False


def _enable_hd_wallet_features() -> None:
    global _HD_WALLET_ENABLED
    if _HD_WALLET_ENABLED:
        return
    Account.enable_unaudited_hdwallet_features()
    _HD_WALLET_ENABLED = True


def _to_hex(raw: bytes) -> str:
    return "0x" + bytes(raw).hex()


class Signer:
    """A local account bound to the provider it transacts through."""

    def __init__(self, account: LocalAccount, web3: AsyncWeb3):
        self.account = account
        self.web3 = web3

    def __repr__(self) -> str:
        return f"<Signer {self.address}>"

    @property
    def address(self) -> str:
        return self.account.address

    def sign_transaction(self, transaction: dict[str, Any]) -> bytes:
        return bytes(self.account.sign_transaction(transaction).raw_transaction)

    def sign_typed_data(
        self,
        domain: dict[str, Any],
        types: dict[str, list[dict[str, str]]],
        value: dict[str, Any],
    ) -> str:
        signed = self.account.sign_typed_data(
            domain_data=domain, message_types=types, message_data=value
        )
        return _to_hex(signed.signature)

    def sign_message(self, message: str | bytes) -> str:
        encoded = (
            encode_defunct(primitive=message)
            if isinstance(message, bytes)
            else encode_defunct(text=message)
        )
        return _to_hex(self.account.sign_message(encoded).signature)


def default_evm_account_path(index: int) -> str:
    idx = int(index)
    if idx < 0:
        raise ValueError("account index must be non-negative")
    return _DEFAULT_EVM_ACCOUNT_PATH_TEMPLATE.format(index=idx)


def make_wallet_from_mnemonic(
    mnemonic: str,
    *,
    account_index: int = 0,
    account_path: str | None = None,
) -> dict[str, Any]:
    """Derive an EVM wallet from a BIP-39 mnemonic.

    Uses MetaMask's default derivation path: ``m/44'/60'/0'/0/{index}``.
    """
    _enable_hd_wallet_features()
    idx = int(account_index)
    if idx < 0:
        raise ValueError("account_index must be non-negative")
    path = str(account_path).strip() if account_path else default_evm_account_path(idx)
    acct = Account.from_mnemonic(str(mnemonic).strip(), account_path=path)
    return {
        "address": acct.address,
        "private_key_hex": acct.key.hex(),
        "derivation_path": path,
        "derivation_index": idx,
    }


def _account_from_credential(credential: SigningCredential) -> LocalAccount:
    match credential.auth_method:
        case "privateKey":
            key = (credential.private_key or "").strip()
            if not key:
                raise ConfigurationError("Private key is required")
            pk = key if key.startswith("0x") else "0x" + key
            try:
                return Account.from_key(pk)
            except Exception as exc:
                raise ConfigurationError(f"Invalid private key: {exc}") from exc
        case "mnemonic":
            mnemonic = (credential.mnemonic or "").strip()
            if not mnemonic:
                raise ConfigurationError("Mnemonic is required")
            _enable_hd_wallet_features()
            path = (credential.derivation_path or "").strip() or DEFAULT_DERIVATION_PATH
            try:
                return Account.from_mnemonic(mnemonic, account_path=path)
            except Exception as exc:
                raise ConfigurationError(f"Invalid mnemonic: {exc}") from exc
    raise ConfigurationError(f"Unknown authentication method: {credential.auth_method}")


def create_signer(credential: SigningCredential, web3: AsyncWeb3) -> Signer:
    signer = Signer(_account_from_credential(credential), web3)
    logger.debug(f"Loaded signer {signer.address} ({credential.auth_method})")
    return signer


def recover_address(message: str | bytes, signature: str | bytes) -> str:
    encoded = (
        encode_defunct(primitive=message)
        if isinstance(message, bytes)
        else encode_defunct(text=message)
    )
    return Account.recover_message(encoded, signature=signature)


async def get_signer_nonce(signer: Signer) -> int:
    return await signer.web3.eth.get_transaction_count(
        signer.address, block_identifier="pending"
    )


async def get_signer_balance(signer: Signer) -> int:
    return int(await signer.web3.eth.get_balance(signer.address))


async def validate_signer_balance(
    signer: Signer,
    required_amount: int,
    *,
    include_gas: bool = False,
    gas_limit: int | None = None,
    gas_price: int | None = None,
) -> dict[str, Any]:
    """Compare the signer's balance against ``required_amount``.

    Insufficiency is reported in the result, not raised. Gas is added to the
    requirement only when ``include_gas`` is set and both gas inputs are given.
    """
    balance = await get_signer_balance(signer)
    required = int(required_amount)
    if include_gas and gas_limit and gas_price:
        required += int(gas_limit) * int(gas_price)
    return {"sufficient": balance >= required, "balance": balance, "required": required}
