from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, FrozenSet, List, Optional

from pydantic import BaseModel, Field, field_validator

from .util import parse_duration


@dataclass(frozen=True)
class Principal:
    """Authenticated identity handed over by the OAuth layer."""
    user_id: str
    client_id: str
    scope: str
    is_local: bool


@dataclass(frozen=True)
class CertificateRecord:
    """Stored metadata of an issued client certificate."""
    common_name: str
    user_id: str
    client_id: str
    valid_from: datetime
    valid_to: datetime

    def __post_init__(self):
        if self.valid_from > self.valid_to:
            raise ValueError("valid_from must not be after valid_to")


@dataclass(frozen=True)
class CertInfo:
    """Certificate and private key as returned by the CA."""
    cert_data: str
    key_data: str
    valid_from: datetime
    valid_to: datetime


@dataclass(frozen=True)
class IssuedCertificate:
    record: CertificateRecord
    cert_data: str
    key_data: str


@dataclass(frozen=True)
class AccessContext:
    permissions: FrozenSet[str]
    expires_at: datetime


class ProfileConfig(BaseModel):
    profile_id: str = ""
    display_name: str
    profile_number: int = 1
    host_name: List[str] = Field(default_factory=list)
    vpn_proto_ports: List[str] = Field(default_factory=lambda: ["udp/1194", "tcp/1194"])
    exposed_vpn_proto_ports: List[str] = Field(default_factory=list)
    hide_profile: bool = False
    enable_acl: bool = False
    acl_permission_list: List[str] = Field(default_factory=list)
    default_gateway: bool = True
    routes: List[str] = Field(default_factory=list)
    dns: List[str] = Field(default_factory=list)
    tls_protocol: str = "tls1.2"

    @field_validator("vpn_proto_ports", "exposed_vpn_proto_ports")
    @classmethod
    def _check_proto_ports(cls, v: List[str]) -> List[str]:
        for entry in v:
            proto, _, port = entry.partition("/")
            if proto not in ("udp", "tcp") or not port.isdigit():
                raise ValueError(f"invalid proto/port entry: {entry!r}")
        return v

    def client_proto_ports(self) -> List[str]:
        return self.exposed_vpn_proto_ports or self.vpn_proto_ports


class PortalConfig(BaseModel):
    session_expiry: str = "P90D"
    profile_list: Dict[str, ProfileConfig] = Field(default_factory=dict)

    @field_validator("session_expiry")
    @classmethod
    def _check_session_expiry(cls, v: str) -> str:
        parse_duration(v)
        return v

    @field_validator("profile_list")
    @classmethod
    def _bind_profile_ids(cls, v: Dict[str, ProfileConfig]) -> Dict[str, ProfileConfig]:
        return {
            profile_id: profile.model_copy(update={"profile_id": profile_id})
            for profile_id, profile in v.items()
        }

    def session_expiry_delta(self) -> timedelta:
        return parse_duration(self.session_expiry)

    def get_profile_config(self, profile_id: str) -> Optional[ProfileConfig]:
        return self.profile_list.get(profile_id)
