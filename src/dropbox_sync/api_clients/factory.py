"""Remote client factory for creating the client an account is configured for."""

from typing import Dict, Type, List

from ..config.schema import AccountConfig
from .base import BaseRemoteClient
from .dropbox import DropboxClient


class RemoteClientFactory:
    """Factory for creating remote client instances."""

    _client_classes: Dict[str, Type[BaseRemoteClient]] = {
        "dropbox": DropboxClient,
    }

    @classmethod
    def create_client(cls, account: AccountConfig, **kwargs) -> BaseRemoteClient:
        """Create a remote client for an account.

        Args:
            account: Account configuration naming the provider and credential
            **kwargs: Additional parameters passed to the client

        Returns:
            Configured remote client instance

        Raises:
            ValueError: If the provider is not supported
        """
        if account.provider not in cls._client_classes:
            raise ValueError(f"Unsupported provider: {account.provider}")

        client_class = cls._client_classes[account.provider]
        return client_class(
            account_name=account.name,
            access_token=account.access_token,
            **kwargs
        )

    @classmethod
    def get_supported_providers(cls) -> List[str]:
        """Get list of supported provider names."""
        return list(cls._client_classes.keys())

