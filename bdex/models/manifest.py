"""
Pydantic models for the manifest that describes a hidden file and its blocks.
"""

import json
import re

from pydantic import BaseModel, Field, ValidationError, field_validator

from bdex.exceptions import ManifestError

_SHA1_RE = re.compile(r"^[0-9a-f]{40}$")


class BlockDescriptor(BaseModel):
    """A single content-addressed block, as listed in the manifest."""

    source_url: str = Field(alias="url")
    declared_size: int = Field(alias="size")
    content_hash: str = Field(alias="sha1")

    class Config:
        """Pydantic model configuration."""

        frozen = True
        populate_by_name = True
        str_strip_whitespace = True

    @field_validator("content_hash")
    @classmethod
    def validate_content_hash(cls, v: str) -> str:
        """Block hashes double as file names, so only plain SHA-1 hex is allowed."""
        v = v.lower()
        if not _SHA1_RE.match(v):
            raise ValueError(f"Block hash must be a 40 character SHA-1 hex digest: {v!r}")
        return v

    @field_validator("source_url")
    @classmethod
    def validate_source_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Block URL must be http(s): {v!r}")
        return v


class Manifest(BaseModel):
    """
    The decoded manifest. Block order is the byte order of the final file.

    The declared total size and hash are informational; they are only checked
    when output verification is requested.
    """

    created_at: int = Field(alias="time")
    filename: str
    total_size: int = Field(alias="size")
    content_hash: str = Field(alias="sha1")
    blocks: tuple[BlockDescriptor, ...] = Field(alias="block")

    class Config:
        """Pydantic model configuration."""

        frozen = True
        populate_by_name = True

    @field_validator("filename")
    @classmethod
    def validate_filename(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Manifest filename cannot be empty.")
        return v

    @field_validator("content_hash")
    @classmethod
    def normalize_content_hash(cls, v: str) -> str:
        return v.strip().lower()

    @classmethod
    def from_payload(cls, payload: bytes) -> "Manifest":
        """
        Parses the JSON document recovered from the manifest image.

        Raises:
            ManifestError: If the payload is not UTF-8 JSON or fails validation.
        """
        try:
            data = json.loads(payload.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ManifestError(f"Manifest payload is not valid JSON: {e}") from e

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ManifestError(f"Manifest validation failed:\n{e}") from e

    @property
    def block_count(self) -> int:
        return len(self.blocks)
