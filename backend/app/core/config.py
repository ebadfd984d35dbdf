from functools import lru_cache
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

from pydantic import AnyUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _ensure_sqlalchemy_postgres_scheme(value: str) -> str:
    if not value.lower().startswith("postgres"):
        return value

    parsed = urlparse(value)
    scheme = parsed.scheme.lower()

    if scheme == "postgres":
        scheme = "postgresql"

    if scheme == "postgresql":
        scheme = "postgresql+psycopg"

    if scheme not in {"postgresql+psycopg", "postgresql+asyncpg"}:
        scheme = "postgresql+psycopg"

    query_params = dict(parse_qsl(parsed.query, keep_blank_values=True))
    query_params.setdefault("target_session_attrs", "read-write")
    new_query = urlencode(query_params, doseq=True)

    normalized = urlunparse(
        parsed._replace(
            scheme=scheme,
            query=new_query,
        )
    )
    return normalized


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    debug: bool = Field(False, description="Enable FastAPI debug mode")
    environment: str = Field(
        default="development",
        description="Runtime environment (development|staging|production)",
    )
    database_url: AnyUrl | str = Field(
        default="sqlite:///../data/callindex.db",
        description="SQLAlchemy compatible database URL",
    )
    rpc_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout applied to every JSON-RPC request",
        gt=0,
    )
    stellar_rpc_url: str | None = Field(
        default=None,
        description="Soroban RPC endpoint; leave unset to keep the Stellar indexer inert",
    )
    stellar_contract_ids: list[str] | str = Field(
        default_factory=list,
        description="Comma-separated Soroban contract ids to index",
    )
    stellar_start_ledger: int | None = Field(
        default=None,
        description="First ledger to index (defaults to 100 ledgers behind the head)",
        ge=1,
    )
    base_rpc_url: str | None = Field(
        default=None,
        description="EVM JSON-RPC endpoint for Base; leave unset to keep the Base indexer inert",
    )
    base_contract_address: str | None = Field(
        default=None,
        description="Call registry contract address on Base",
    )
    base_start_block: int | None = Field(
        default=None,
        description="First block to index on Base (defaults to 1)",
        ge=1,
    )
    base_block_batch_size: int = Field(
        default=2000,
        description="Maximum block span requested per eth_getLogs call",
        ge=1,
    )
    indexer_poll_interval_ms: int = Field(
        default=12000,
        description="Delay between indexer poll cycles in milliseconds",
        ge=1,
    )
    indexer_max_retries: int = Field(
        default=3,
        description="Retries attempted for a failing poll cycle before it is abandoned",
        ge=0,
    )
    indexer_retry_delay_ms: int = Field(
        default=5000,
        description="Fixed delay between poll cycle retries in milliseconds",
        ge=0,
    )
    indexer_autostart: bool = Field(
        default=False,
        description="Start the chain indexers inside the API process on startup",
    )
    oracle_seed_hex: str | None = Field(
        default=None,
        description="Hex encoded 32-byte Ed25519 seed for the oracle signing key",
    )
    oracle_monitor_interval_seconds: float = Field(
        default=60.0,
        description="Interval between oracle monitor settlement sweeps",
        gt=0,
    )
    oracle_audit_log_path: str | None = Field(
        default="../data/oracle_audit.jsonl",
        description="Append-only JSON lines audit log for settlement attempts (blank disables the file)",
    )

    @field_validator("database_url", mode="before")
    @classmethod
    def _normalize_postgres_urls(cls, value: Any) -> Any:
        if value is None or not isinstance(value, str):
            return value

        if value.startswith("postgresql+psycopg://") or value.startswith(
            "postgresql+asyncpg://"
        ):
            return value

        normalized = value
        if normalized.startswith("postgres://"):
            normalized = "postgresql://" + normalized[len("postgres://") :]

        return normalized

    @field_validator("stellar_contract_ids", mode="after")
    @classmethod
    def _parse_contract_ids(cls, value: Any) -> list[str]:
        if value in (None, "", []):
            return []
        if isinstance(value, str):
            candidate = value.strip()
            if not candidate:
                return []
            return [
                item for item in (part.strip() for part in candidate.split(",")) if item
            ]
        if isinstance(value, (list, tuple, set)):
            return [str(item).strip() for item in value if str(item).strip()]
        raise ValueError(
            "STELLAR_CONTRACT_IDS must be provided as a list or comma-separated string"
        )

    @field_validator("oracle_seed_hex")
    @classmethod
    def _validate_oracle_seed(cls, value: str | None) -> str | None:
        if value is None:
            return None
        candidate = value.strip().lower()
        if candidate.startswith("0x"):
            candidate = candidate[2:]
        if not candidate:
            return None
        try:
            seed = bytes.fromhex(candidate)
        except ValueError as exc:
            raise ValueError("ORACLE_SEED_HEX must be hex encoded") from exc
        if len(seed) != 32:
            raise ValueError("ORACLE_SEED_HEX must decode to exactly 32 bytes")
        return candidate

    @property
    def resolved_database_url(self) -> str:
        return _ensure_sqlalchemy_postgres_scheme(str(self.database_url))

    @property
    def oracle_seed(self) -> bytes | None:
        if not self.oracle_seed_hex:
            return None
        return bytes.fromhex(self.oracle_seed_hex)


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
