from sqlmodel import SQLModel, Field
from pydantic import BaseModel, ConfigDict, field_validator
from typing import Any, Optional
from enum import Enum
from pathlib import Path
from datetime import datetime, timezone
import ipaddress
import uuid

import dns.name
import dns.rdata

from hnssec.config import OUTPUT_DIR, BACKUP_DIR, DB_PATH


class KeyRole(str, Enum):
    KSK = "ksk"
    ZSK = "zsk"


class Domain(BaseModel):
    """A domain to provision: fully-qualified name plus the IPv4 host it points at."""

    name: str
    host: str

    @field_validator("name")
    @classmethod
    def normalize_name(cls, value: str) -> str:
        name = value.strip().lower().rstrip(".")
        if not name:
            raise ValueError("domain name must not be empty")
        return name + "."

    @field_validator("host")
    @classmethod
    def check_host(cls, value: str) -> str:
        return str(ipaddress.IPv4Address(value.strip()))

    @property
    def label(self) -> str:
        return self.name[:-1]

    @property
    def wildcard(self) -> str:
        return f"*.{self.name}"

    @property
    def nameserver(self) -> str:
        return f"ns.{self.name}"

    @property
    def origin(self) -> dns.name.Name:
        return dns.name.from_text(self.name)


class KeyPair(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    role: KeyRole
    algorithm: int
    private_key: Any  # cryptography RSAPrivateKey
    dnskey: dns.rdata.Rdata
    key_tag: int


class RunOptions(BaseModel):
    """Options for one pipeline run. The batch driver copies it per catalogue entry."""

    host: Optional[str] = None
    name: Optional[str] = None
    verbose: bool = False
    output_dir: Path = OUTPUT_DIR
    backup_dir: Path = BACKUP_DIR
    db_path: Path = DB_PATH


class DNSSECLog(SQLModel, table=True):
    __tablename__ = "dnssec_log"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True, index=True)

    domain: str = Field(index=True)
    action: str  # 'generate'

    # Metadata
    ksk_key_tag: Optional[int] = None
    zsk_key_tag: Optional[int] = None
    algorithm: Optional[int] = None
    ds_digest: Optional[str] = None
    ds_digest_type: Optional[int] = None

    host: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), index=True)
