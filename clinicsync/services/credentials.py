from __future__ import annotations

from typing import Optional


class CredentialProvider:
    """Supplies the bearer token for backend requests.

    The session layer that logs users in and refreshes tokens lives outside
    this package; it plugs in by subclassing or by ``set_credential_provider``.
    """

    def get_access_token(self) -> Optional[str]:
        return None


class StaticCredentialProvider(CredentialProvider):
    def __init__(self, token: Optional[str]) -> None:
        self.token = token

    def get_access_token(self) -> Optional[str]:
        return self.token


_provider: CredentialProvider = CredentialProvider()


def get_credential_provider() -> CredentialProvider:
    return _provider


def set_credential_provider(provider: CredentialProvider) -> None:
    global _provider
    _provider = provider


def reset_credential_provider() -> None:
    set_credential_provider(CredentialProvider())
