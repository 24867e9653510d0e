import datetime
from typing import Optional

from eth_utils import is_address, to_checksum_address

from ..exceptions import ValidationError


def utcnow() -> datetime.datetime:
    """
    Current time as naive UTC datetime, the format stored in the database
    """
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


def to_iso(value: Optional[datetime.datetime]) -> Optional[str]:
    """
    Render a stored (naive UTC) datetime as ISO-8601 string with explicit offset
    """
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=datetime.timezone.utc)
    return value.isoformat()


def normalize_address(address: str) -> str:
    """
    Checksum an EVM address so that differently cased inputs map to the same key
    :param address: hex encoded address, any casing
    :return: EIP-55 checksum address
    """
    if not isinstance(address, str) or not is_address(address.lower()):
        raise ValidationError(f"Invalid address: {address!r}", code="InvalidAddress")
    return to_checksum_address(address.lower())
