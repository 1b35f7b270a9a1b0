"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

from pydantic import BaseModel, Field, field_validator

from mingw_dl import __version__

from .attributes import (
    Arch,
    AttributeField,
    CRuntime,
    ExceptionModel,
    FilterSelection,
    RuntimeVersion,
    ThreadModel,
)

DEFAULT_RELEASES_URL = (
    "https://api.github.com/repos/niXman/mingw-builds-binaries/releases"
)
DEFAULT_USER_AGENT = f"mingw-dl/{__version__}"
DEFAULT_CHUNK_SIZE = 262144  # 256 KB

# INI key -> attribute field, used for the default filter selection
FILTER_KEYS = {
    "arch": AttributeField.ARCH,
    "threads": AttributeField.THREAD_MODEL,
    "exceptions": AttributeField.EXCEPTION_MODEL,
    "crt": AttributeField.C_RUNTIME,
    "runtime": AttributeField.RUNTIME_VERSION,
}


class AppConfig(BaseModel):
    """A validated configuration model for the application."""

    # Remote source
    releases_url: str = DEFAULT_RELEASES_URL
    user_agent: str = DEFAULT_USER_AGENT

    # Download Settings
    output_dir: str = "."
    extract: bool = False
    chunk_size: int = DEFAULT_CHUNK_SIZE
    timeout_seconds: float = 0

    # Default filter selection (None = unconstrained)
    arch: Arch | None = None
    threads: ThreadModel | None = None
    exceptions: ExceptionModel | None = None
    crt: CRuntime | None = None
    runtime: RuntimeVersion | None = None

    # Internal fields not loaded from INI file
    config_path: str = Field("", repr=False)

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator("releases_url")
    @classmethod
    def validate_releases_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("Releases URL must start with http:// or https://.")
        return v

    @field_validator("user_agent", "output_dir")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("Value cannot be empty.")
        return v

    @field_validator("chunk_size")
    @classmethod
    def validate_chunk_size(cls, v: int) -> int:
        """Ensures a reasonable chunk size (4 KB to 8 MB)."""
        if v < 4096 or v > 8 * 1024 * 1024:
            raise ValueError("Chunk size must be between 4096 and 8388608 bytes.")
        return v

    @field_validator("timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Timeout cannot be negative (use 0 to disable).")
        return v

    @field_validator("arch", "threads", "exceptions", "crt", "runtime", mode="before")
    @classmethod
    def empty_filter_is_unset(cls, v):
        """Blank INI values and 'any' mean no constraint."""
        if isinstance(v, str):
            v = v.strip().lower()
            if v in ("", "any"):
                return None
        return v

    def filter_selection(self) -> FilterSelection:
        """Builds the default filter selection from the configured values."""
        selection = FilterSelection()
        for key, field in FILTER_KEYS.items():
            setattr(selection, field.value, getattr(self, key))
        return selection

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path"}
        return {key for key in cls.model_fields if key not in internal_fields}
