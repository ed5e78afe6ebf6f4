# control-plane/core/subnet.py
"""
Subnet Codec
Parses, validates and formats the 10.N.0.0/24 address-block notation
and derives the fixed host addresses inside a block.

Canonical form: ``10.N.0.0/24`` where N is a bare decimal in [1, 254].
Leading zeros ("10.01.0.0/24") are rejected, and block numbers 0 and 255
are reserved, so both parse to ``None``.
"""

import ipaddress
import re
from typing import Any, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .exceptions import ValidationError

BLOCK_PREFIX_LEN = 24
MIN_BLOCK_NUMBER = 1
MAX_BLOCK_NUMBER = 254

# Gateways take .1 - .99, the agent host is always .100
MAX_GATEWAY_INDEX = 98
AGENT_HOST_OCTET = 100

_SUBNET_RE = re.compile(r"10\.(0|[1-9][0-9]{0,2})\.0\.0/24")


class AddressBlock(BaseModel):
    """A /24 block of the mesh overlay, identified by its second octet"""

    number: int = Field(..., ge=MIN_BLOCK_NUMBER, le=MAX_BLOCK_NUMBER)
    prefix_len: int = Field(default=BLOCK_PREFIX_LEN)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_number(cls, number: int) -> "AddressBlock":
        _require_block_number(number)
        return cls(number=number)

    @property
    def network(self) -> ipaddress.IPv4Network:
        return ipaddress.IPv4Network(format_subnet(self))

    @property
    def agent_ip(self) -> str:
        return agent_host(self.number)

    def gateway_ip(self, index: int = 0) -> str:
        return gateway_host(self.number, index)

    def __str__(self) -> str:
        return format_subnet(self)


def is_block_number(value: Any) -> bool:
    """True for ints in [1, 254]; bools are not block numbers"""
    return (
        isinstance(value, int)
        and not isinstance(value, bool)
        and MIN_BLOCK_NUMBER <= value <= MAX_BLOCK_NUMBER
    )


def parse_subnet(value: Any) -> Optional[AddressBlock]:
    """
    Parse a canonical block string

    Returns:
        AddressBlock, or None for anything that is not an allocatable block.
        Never raises, so bulk readers can skip bad records.
    """
    if not isinstance(value, str):
        return None

    match = _SUBNET_RE.fullmatch(value)
    if not match:
        return None

    number = int(match.group(1))
    if not is_block_number(number):
        return None

    return AddressBlock(number=number)


def format_subnet(block: AddressBlock) -> str:
    """Canonical string form of a block"""
    return f"10.{block.number}.0.0/{block.prefix_len}"


def is_valid_subnet(value: Any) -> bool:
    return parse_subnet(value) is not None


def gateway_host(number: int, index: int = 0) -> str:
    """
    Gateway host address inside block N

    Args:
        number: Block number
        index: Gateway index (0-based), .1 for index 0 up to .99

    Raises:
        ValidationError: If the block number or index is out of range
    """
    _require_block_number(number)
    if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index <= MAX_GATEWAY_INDEX:
        raise ValidationError(
            f"Gateway index {index!r} out of range (0-{MAX_GATEWAY_INDEX})"
        )
    return f"10.{number}.0.{index + 1}"


def agent_host(number: int) -> str:
    """Agent host address inside block N (always .100)"""
    _require_block_number(number)
    return f"10.{number}.0.{AGENT_HOST_OCTET}"


def host_cidr(ip: str, prefix_len: int = 32) -> str:
    return f"{ip}/{prefix_len}"


def block_numbers(subnets: Iterable[Any]) -> List[int]:
    """Block numbers of the valid entries, malformed ones are skipped"""
    numbers = []
    for subnet in subnets:
        block = parse_subnet(subnet)
        if block is not None:
            numbers.append(block.number)
    return numbers


def _require_block_number(number: Any) -> None:
    if not is_block_number(number):
        raise ValidationError(
            f"Block number {number!r} out of range "
            f"({MIN_BLOCK_NUMBER}-{MAX_BLOCK_NUMBER})"
        )
