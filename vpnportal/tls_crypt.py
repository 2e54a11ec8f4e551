"""
Static key management for the OpenVPN control channel.

The tls-crypt key is a 2048 bit pre-shared blob in the exact text format
written by `openvpn --genkey --secret <file>`. It is loaded (or generated)
once at startup and afterwards only read.
"""

import os
import textwrap
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Union

from nacl.encoding import HexEncoder

from .errors import ConfigurationError
from .util import SecureRandom

KEY_MARKER = "2048 bit OpenVPN static key"
KEY_SIZE = 256
LINE_WIDTH = 32

_HEADER = (
    "#\n"
    f"# {KEY_MARKER}\n"
    "#\n"
    "-----BEGIN OpenVPN Static key V1-----\n"
)
_FOOTER = "-----END OpenVPN Static key V1-----\n"


@dataclass(frozen=True)
class StaticKey:
    """Validated tls-crypt key blob. Construct through the classmethods."""
    blob: str

    def __post_init__(self):
        if KEY_MARKER not in self.blob:
            raise ConfigurationError("provided string is not an OpenVPN static key")

    @classmethod
    def from_string(cls, blob: str) -> "StaticKey":
        return cls(blob)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "StaticKey":
        try:
            with open(path, "r", encoding="utf-8") as f:
                blob = f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigurationError(f"unable to read static key from {path}: {e}") from e
        return cls(blob)

    @classmethod
    def generate(cls, random_bytes: Optional[Callable[[int], bytes]] = None) -> "StaticKey":
        """
        Generate a fresh key, same as `openvpn --genkey --secret <file>`.

        Args:
            random_bytes: Source of randomness, defaults to libsodium
        """
        if random_bytes is None:
            random_bytes = SecureRandom().bytes
        data = random_bytes(KEY_SIZE)
        if len(data) != KEY_SIZE:
            raise ConfigurationError(f"random source returned {len(data)} bytes, expected {KEY_SIZE}")
        hex_data = HexEncoder.encode(data).decode("ascii")
        body = "\n".join(textwrap.wrap(hex_data, LINE_WIDTH))
        return cls(_HEADER + body + "\n" + _FOOTER)

    def raw(self) -> str:
        return self.blob

    def save(self, path: Union[str, Path]) -> None:
        """Write the key to `path`, readable by the owner only."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(str(path), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(self.blob)

    def __repr__(self) -> str:
        return "StaticKey(<redacted>)"


def load_or_generate(path: Union[str, Path]) -> StaticKey:
    """Load the key at `path`, generating and saving one if it does not exist yet."""
    if Path(path).exists():
        return StaticKey.from_file(path)
    key = StaticKey.generate()
    key.save(path)
    return key
