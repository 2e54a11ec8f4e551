"""Rendering of OpenVPN client profiles."""

import random
from typing import List, Optional

from .models import ProfileConfig


def remote_lines(profile: ProfileConfig, shuffle_hosts: bool = True,
                 rng: Optional[random.Random] = None) -> List[str]:
    """One `remote` line per host and proto/port, UDP entries first."""
    hosts = list(profile.host_name)
    if shuffle_hosts:
        (rng or random.Random()).shuffle(hosts)

    proto_ports = profile.client_proto_ports()
    ordered = [pp for pp in proto_ports if pp.startswith("udp/")] + \
              [pp for pp in proto_ports if pp.startswith("tcp/")]

    lines = []
    for host in hosts:
        for proto_port in ordered:
            proto, port = proto_port.split("/")
            lines.append(f"remote {host} {port} {proto}")
    return lines


def render(profile: ProfileConfig, ca_cert: str, tls_crypt: str,
           shuffle_hosts: bool = True, rng: Optional[random.Random] = None) -> str:
    """
    Build the client configuration for `profile`.

    The client certificate and key are not included; clients add the
    keypair obtained from /create_keypair themselves.
    """
    tls_version_min = "1.3" if profile.tls_protocol == "tls1.3" else "1.2"
    lines = [
        "dev tun",
        "client",
        "nobind",
        "remote-cert-tls server",
        "verb 3",
        "server-poll-timeout 10",
        f"tls-version-min {tls_version_min}",
        "data-ciphers AES-256-GCM:CHACHA20-POLY1305",
        "reneg-sec 0",
        f"setenv UV_PROFILE_ID {profile.profile_id}",
    ]
    if profile.default_gateway:
        lines.append("redirect-gateway def1 ipv6")

    lines.append("<ca>")
    lines.append(ca_cert.strip())
    lines.append("</ca>")
    lines.append("<tls-crypt>")
    lines.append(tls_crypt.strip())
    lines.append("</tls-crypt>")
    lines.extend(remote_lines(profile, shuffle_hosts, rng))

    return "\n".join(lines) + "\n"


def to_crlf(config: str) -> str:
    return config.replace("\n", "\r\n")
