"""Pydantic v2 configuration for document writing.

Values that are per-document rather than per-array: block header layout,
text wrapping and the encoding applied to arrays handed over as a plain
``name -> ndarray`` mapping. Supports JSON I/O.
"""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import BaseModel, Field, model_validator

from vtkrect.constants import DEFAULT_BYTE_ORDER, DEFAULT_HEADER_TYPE
from vtkrect.core.bases import BinaryLayout, Encoding, Placement, resolve_placement


class BinaryConfig(BaseModel):
    """Byte order and block header type of binary content."""

    byte_order: str = Field(DEFAULT_BYTE_ORDER, description="'LittleEndian' or 'BigEndian'")
    header_type: str = Field(
        DEFAULT_HEADER_TYPE,
        description="Width of the byte-count prefix of every block: 'UInt32' or 'UInt64'",
    )

    @model_validator(mode="after")
    def validate_choices(self) -> BinaryConfig:
        if self.byte_order not in ("LittleEndian", "BigEndian"):
            raise ValueError(f"byte_order must be 'LittleEndian' or 'BigEndian', got '{self.byte_order}'")
        if self.header_type not in ("UInt32", "UInt64"):
            raise ValueError(f"header_type must be 'UInt32' or 'UInt64', got '{self.header_type}'")
        return self


class TextConfig(BaseModel):
    """Layout of ascii content."""

    values_per_line: int = Field(6, ge=1, description="Values per line of ascii content")


class WriterConfig(BaseModel):
    """Top-level writer configuration."""

    binary: BinaryConfig = Field(default_factory=BinaryConfig)
    text: TextConfig = Field(default_factory=TextConfig)
    default_encoding: str = Field(
        "ascii",
        description="Encoding for arrays passed as a plain mapping: 'ascii', 'base64' or 'raw'",
    )
    default_placement: str | None = Field(
        None,
        description="Placement for arrays passed as a plain mapping (None = encoding default)",
    )

    @model_validator(mode="after")
    def validate_encoding(self) -> WriterConfig:
        valid = [e.value for e in Encoding]
        if self.default_encoding not in valid:
            raise ValueError(f"default_encoding must be one of {valid}, got '{self.default_encoding}'")
        if self.default_placement is not None:
            placements = [p.value for p in Placement]
            if self.default_placement not in placements:
                raise ValueError(
                    f"default_placement must be one of {placements}, got '{self.default_placement}'"
                )
            resolve_placement(self.encoding, Placement(self.default_placement))
        return self

    @property
    def encoding(self) -> Encoding:
        return Encoding(self.default_encoding)

    @property
    def placement(self) -> Placement | None:
        return None if self.default_placement is None else Placement(self.default_placement)

    def layout(self) -> BinaryLayout:
        return BinaryLayout(byte_order=self.binary.byte_order, header_type=self.binary.header_type)

    # --- I/O helpers ---

    @classmethod
    def from_file(cls, path: str | Path) -> WriterConfig:
        """Load configuration from a JSON file."""
        path = Path(path)
        with path.open() as f:
            data = json.load(f)
        return cls(**data)

    def to_json(self, path: str | Path | None = None) -> str:
        """Serialize to JSON string, optionally writing to file."""
        out = self.model_dump_json(indent=2)
        if path is not None:
            Path(path).write_text(out)
        return out
