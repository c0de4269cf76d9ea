"""
GhostAccount Decoder - Fixed-Layout Binary Schema

Turns the raw bytes of a ghost account into a typed GhostRecord.

Design:
- Layout is declared once as an ordered tuple of field descriptors; offsets
  are computed from declaration order and checked against the account size
  at import time, so a layout typo fails loudly instead of mis-parsing.
- Integers are little-endian; bools are a single byte (1 = true).
- Option<T> fields are a presence byte followed by a payload slot that is
  ALWAYS the full width of T. The slot holds garbage when absent but offsets
  never special-case absence.
- The 8-byte leading account tag is skipped, not validated. The buffer must
  be exactly GHOST_ACCOUNT_SIZE; bytes after the last field are reserved.
- Any failure raises RecordDecodeError; the scanner loop logs and skips.
"""

import struct
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from solders.pubkey import Pubkey

from .protocol import GHOST_ACCOUNT_SIZE, GHOST_ACCOUNT_TAG, GHOST_RESERVED_TAIL, TAG_SIZE


class RecordDecodeError(Exception):
    """Raised when an account buffer cannot be decoded into a GhostRecord."""

    def __init__(self, address: Any, reason: str):
        self.address = address
        self.reason = reason
        super().__init__(f"cannot decode {address}: {reason}")


# ============================================================
# RECORD
# ============================================================

@dataclass(frozen=True)
class GhostRecord:
    """Decoded on-chain ghost account."""
    address: Pubkey
    owner: Pubkey
    recovery_wallet: Optional[Pubkey]
    last_heartbeat: int
    interval_seconds: int
    grace_period_seconds: int
    awakened: bool
    awakened_at: Optional[int]
    executed: bool
    executed_at: Optional[int]
    staked_amount: int
    bump: int
    vault_bump: int
    registered_at: int
    ping_count: int
    beneficiary_count: int

    @property
    def short_owner(self) -> str:
        return str(self.owner)[:8] + "..."


# ============================================================
# SCHEMA
# ============================================================

class FieldKind(Enum):
    PUBKEY = "pubkey"
    I64 = "i64"
    U64 = "u64"
    U8 = "u8"
    BOOL = "bool"

    @property
    def width(self) -> int:
        return _WIRE[self][0]

    @property
    def fmt(self) -> Optional[str]:
        return _WIRE[self][1]


# kind -> (payload width, struct format); pubkeys are copied raw
_WIRE: dict[FieldKind, tuple[int, Optional[str]]] = {
    FieldKind.PUBKEY: (32, None),
    FieldKind.I64: (8, "<q"),
    FieldKind.U64: (8, "<Q"),
    FieldKind.U8: (1, "<B"),
    FieldKind.BOOL: (1, "<B"),
}


@dataclass(frozen=True)
class FieldSpec:
    name: str
    kind: FieldKind
    optional: bool = False
    offset: int = 0

    @property
    def width(self) -> int:
        # presence byte + full payload slot, regardless of presence
        return self.kind.width + (1 if self.optional else 0)


def _build_layout(fields: list[tuple[str, FieldKind, bool]]) -> tuple[FieldSpec, ...]:
    layout = []
    offset = TAG_SIZE
    for name, kind, optional in fields:
        field = FieldSpec(name=name, kind=kind, optional=optional, offset=offset)
        layout.append(field)
        offset += field.width
    if offset + GHOST_RESERVED_TAIL != GHOST_ACCOUNT_SIZE:
        raise RuntimeError(
            f"GhostAccount layout is {offset} + {GHOST_RESERVED_TAIL} reserved bytes, "
            f"expected {GHOST_ACCOUNT_SIZE}"
        )
    return tuple(layout)


GHOST_LAYOUT: tuple[FieldSpec, ...] = _build_layout([
    ("owner", FieldKind.PUBKEY, False),
    ("recovery_wallet", FieldKind.PUBKEY, True),
    ("last_heartbeat", FieldKind.I64, False),
    ("interval_seconds", FieldKind.I64, False),
    ("grace_period_seconds", FieldKind.I64, False),
    ("awakened", FieldKind.BOOL, False),
    ("awakened_at", FieldKind.I64, True),
    ("executed", FieldKind.BOOL, False),
    ("executed_at", FieldKind.I64, True),
    ("staked_amount", FieldKind.U64, False),
    ("bump", FieldKind.U8, False),
    ("vault_bump", FieldKind.U8, False),
    ("registered_at", FieldKind.I64, False),
    ("ping_count", FieldKind.U64, False),
    ("beneficiary_count", FieldKind.U8, False),
])


# ============================================================
# DECODE / ENCODE
# ============================================================

def _read_value(data: bytes, kind: FieldKind, offset: int) -> Any:
    if kind is FieldKind.PUBKEY:
        raw = data[offset:offset + 32]
        if len(raw) != 32:
            raise struct.error(f"pubkey read past end at offset {offset}")
        return Pubkey(raw)
    (value,) = struct.unpack_from(kind.fmt, data, offset)
    if kind is FieldKind.BOOL:
        return value == 1
    return value


def decode_record(address: Pubkey, data: bytes) -> GhostRecord:
    """
    Decode a ghost account buffer.

    Raises RecordDecodeError on wrong length or any out-of-range read.
    """
    data = bytes(data)
    if len(data) != GHOST_ACCOUNT_SIZE:
        raise RecordDecodeError(
            address, f"expected {GHOST_ACCOUNT_SIZE} bytes, got {len(data)}"
        )

    values: dict[str, Any] = {}
    try:
        for field in GHOST_LAYOUT:
            if field.optional:
                present = data[field.offset] == 1
                values[field.name] = (
                    _read_value(data, field.kind, field.offset + 1) if present else None
                )
            else:
                values[field.name] = _read_value(data, field.kind, field.offset)
    except (struct.error, IndexError, ValueError) as e:
        raise RecordDecodeError(address, f"{type(e).__name__}: {e}") from e

    return GhostRecord(address=address, **values)


def _write_value(buf: bytearray, kind: FieldKind, offset: int, value: Any) -> None:
    if kind is FieldKind.PUBKEY:
        buf[offset:offset + 32] = bytes(value)
    elif kind is FieldKind.BOOL:
        struct.pack_into(kind.fmt, buf, offset, 1 if value else 0)
    else:
        struct.pack_into(kind.fmt, buf, offset, value)


def encode_record(record: GhostRecord, tag: bytes = GHOST_ACCOUNT_TAG) -> bytes:
    """Serialize a GhostRecord back into the 153-byte account layout."""
    buf = bytearray(GHOST_ACCOUNT_SIZE)
    buf[:TAG_SIZE] = tag[:TAG_SIZE]
    for field in GHOST_LAYOUT:
        value = getattr(record, field.name)
        if field.optional:
            buf[field.offset] = 0 if value is None else 1
            if value is not None:
                _write_value(buf, field.kind, field.offset + 1, value)
        else:
            _write_value(buf, field.kind, field.offset, value)
    return bytes(buf)
