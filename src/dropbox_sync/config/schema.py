"""Configuration schema definitions for accounts and path mappings."""

from typing import List
from pydantic import BaseModel, Field, field_validator

# Dropbox caps list_folder/longpoll timeouts at 480 seconds.
MAX_WAIT_INTERVAL = 480


class MappingConfig(BaseModel):
    """A remote folder mirrored into a local directory."""

    remote_path: str = Field(default="", description="Remote folder, '' for the account root")
    local_path: str = Field(..., description="Local directory receiving the mirror")

    @field_validator('remote_path')
    @classmethod
    def normalize_remote_path(cls, v):
        """The Dropbox API wants '' for the root and '/a/b' everywhere else."""
        v = v.strip().rstrip('/')
        if v and not v.startswith('/'):
            v = f"/{v}"
        return v

    @field_validator('local_path')
    @classmethod
    def validate_local_path(cls, v):
        if not v.strip():
            raise ValueError("local_path must not be empty")
        return v


class AccountConfig(BaseModel):
    """Configuration for a single remote account."""

    name: str = Field(..., description="Unique account name used in logs")
    access_token: str = Field(..., description="OAuth access token for the account")
    provider: str = Field(default="dropbox", description="Remote client type")
    mappings: List[MappingConfig] = Field(default_factory=list, description="Mirrored folders")

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        if not v.strip():
            raise ValueError("Account name must not be empty")
        return v


class SyncConfig(BaseModel):
    """Root configuration for the sync process."""

    wait_interval: float = Field(default=30, description="Long-poll timeout and idle sleep in seconds")
    verbose: bool = Field(default=True, description="Log skip/download/create/delete actions")
    error_retry_delay: float = Field(default=5, description="Delay before retrying a failed long-poll")
    accounts: List[AccountConfig] = Field(default_factory=list, description="Accounts to mirror")

    @field_validator('wait_interval')
    @classmethod
    def validate_wait_interval(cls, v):
        if v <= 0 or v > MAX_WAIT_INTERVAL:
            raise ValueError(f"wait_interval must be in (0, {MAX_WAIT_INTERVAL}]")
        return v

    @field_validator('error_retry_delay')
    @classmethod
    def validate_retry_delay(cls, v):
        if v < 0:
            raise ValueError("error_retry_delay must not be negative")
        return v

    @field_validator('accounts')
    @classmethod
    def validate_unique_accounts(cls, v):
        names = [account.name for account in v]
        if len(names) != len(set(names)):
            raise ValueError("Account names must be unique")
        return v

    def get_account(self, name: str) -> AccountConfig:
        """Get an account configuration by name."""
        for account in self.accounts:
            if account.name == name:
                return account
        raise KeyError(name)

    def count_mappings(self) -> int:
        return sum(len(account.mappings) for account in self.accounts)


EXAMPLE_CONFIG = SyncConfig(
    wait_interval=30,
    verbose=True,
    accounts=[
        AccountConfig(
            name="PersonalDropbox",
            access_token="<access token>",
            mappings=[MappingConfig(remote_path="", local_path="dropbox")]
        ),
        AccountConfig(
            name="WorkDropbox",
            access_token="<access token>",
            mappings=[MappingConfig(remote_path="/Work/Plan", local_path="dropbox/work/plan")]
        ),
    ]
)
