"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

from pathlib import Path

from pydantic import BaseModel, Field, field_validator, model_validator

from bdex.utils.path import parse_identifier

DEFAULT_MANIFEST_URL_TEMPLATE = "https://i0.hdslb.com/bfs/album/{hash}.png"
DEFAULT_MIRROR_HOSTS = ("i1.hdslb.com", "i2.hdslb.com", "i3.hdslb.com")


class RunConfig(BaseModel):
    """A validated configuration model for one download run."""

    # Target
    identifier: str
    destination: Path = Path(".")

    # Download Settings
    max_workers: int = 8
    retry_times: int = 8
    skip_hash: bool = False
    keep_files: bool = False
    stall_timeout: float = 10.0

    # Verification Options
    verify_blocks: bool = False
    verify_output: bool = False

    # CDN Settings
    manifest_url_template: str = DEFAULT_MANIFEST_URL_TEMPLATE
    mirror_hosts: tuple[str, str, str] = DEFAULT_MIRROR_HOSTS

    # Internal fields not loaded from INI file
    config_path: str = Field(default="", repr=False)

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator("identifier")
    @classmethod
    def validate_identifier(cls, v: str) -> str:
        """Strips an optional 'scheme://' marker and checks what is left."""
        identifier = parse_identifier(v)
        if identifier is None:
            raise ValueError(
                f"Invalid manifest identifier: {v!r}. "
                "Expected a hash such as 'bdex://<hash>' or '<hash>'."
            )
        return identifier

    @field_validator("max_workers")
    @classmethod
    def validate_workers(cls, v: int) -> int:
        """Ensures a reasonable number of workers."""
        if v < 1 or v > 64:
            raise ValueError("Max workers must be between 1 and 64.")
        return v

    @field_validator("retry_times")
    @classmethod
    def validate_retry_times(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Retry times must be at least 1.")
        return v

    @field_validator("stall_timeout")
    @classmethod
    def validate_stall_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Stall timeout must be a positive number of seconds.")
        return v

    @field_validator("manifest_url_template")
    @classmethod
    def validate_template(cls, v: str) -> str:
        """The template must place the identifier somewhere in the URL."""
        if "{hash}" not in v:
            raise ValueError("Manifest URL template must contain '{hash}'.")
        if not v.startswith(("http://", "https://")):
            raise ValueError("Manifest URL template must be an http(s) URL.")
        return v

    @field_validator("mirror_hosts", mode="before")
    @classmethod
    def split_mirror_hosts(cls, v):
        if isinstance(v, str):
            v = [h.strip() for h in v.split(",") if h.strip()]
        return tuple(v)

    @model_validator(mode="after")
    def validate_option_conflicts(self) -> "RunConfig":
        """Checks for conflicting options."""
        if self.skip_hash and self.verify_blocks:
            raise ValueError("Cannot use --skip-hash and --verify-blocks simultaneously.")
        return self

    @property
    def manifest_url(self) -> str:
        return self.manifest_url_template.format(hash=self.identifier)

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that may appear in the INI file."""
        internal_fields = {"config_path", "identifier", "destination"}
        return {key for key in cls.model_fields if key not in internal_fields}
