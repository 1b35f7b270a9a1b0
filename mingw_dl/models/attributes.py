"""
Build attributes encoded in MinGW-w64 asset file names.

Each enum carries an explicit UNKNOWN member for "not present in the name".
Filters never use UNKNOWN to mean "no constraint"; they use None instead
(see FilterSelection).
"""

from dataclasses import dataclass
from enum import Enum


class Arch(str, Enum):
    UNKNOWN = "unknown"
    I686 = "i686"
    X86_64 = "x86_64"


class ThreadModel(str, Enum):
    UNKNOWN = "unknown"
    POSIX = "posix"
    WIN32 = "win32"
    MCF = "mcf"


class ExceptionModel(str, Enum):
    UNKNOWN = "unknown"
    SEH = "seh"
    DWARF = "dwarf"


class CRuntime(str, Enum):
    UNKNOWN = "unknown"
    UCRT = "ucrt"
    MSVCRT = "msvcrt"


class RuntimeVersion(str, Enum):
    UNKNOWN = "unknown"
    V13 = "rt_v13"


class AttributeField(str, Enum):
    """Names the five attribute fields shared by AttributeSet and FilterSelection."""

    ARCH = "arch"
    THREAD_MODEL = "thread_model"
    EXCEPTION_MODEL = "exception_model"
    C_RUNTIME = "c_runtime"
    RUNTIME_VERSION = "runtime_version"

    @property
    def enum_type(self) -> type[Enum]:
        return FIELD_TYPES[self]


FIELD_TYPES: dict[AttributeField, type[Enum]] = {
    AttributeField.ARCH: Arch,
    AttributeField.THREAD_MODEL: ThreadModel,
    AttributeField.EXCEPTION_MODEL: ExceptionModel,
    AttributeField.C_RUNTIME: CRuntime,
    AttributeField.RUNTIME_VERSION: RuntimeVersion,
}


@dataclass(frozen=True)
class AttributeSet:
    """The five-field classification derived from an asset's file name."""

    arch: Arch = Arch.UNKNOWN
    thread_model: ThreadModel = ThreadModel.UNKNOWN
    exception_model: ExceptionModel = ExceptionModel.UNKNOWN
    c_runtime: CRuntime = CRuntime.UNKNOWN
    runtime_version: RuntimeVersion = RuntimeVersion.UNKNOWN

    def get(self, field: AttributeField) -> Enum:
        return getattr(self, field.value)

    @property
    def is_unknown(self) -> bool:
        """True when no attribute at all was recognized in the name."""
        return all(self.get(f).name == "UNKNOWN" for f in AttributeField)


@dataclass
class FilterSelection:
    """
    User-chosen constraints over the attribute fields.

    A field set to None is unconstrained. Any enum member, including UNKNOWN,
    is an exact-match constraint.
    """

    arch: Arch | None = None
    thread_model: ThreadModel | None = None
    exception_model: ExceptionModel | None = None
    c_runtime: CRuntime | None = None
    runtime_version: RuntimeVersion | None = None

    def get(self, field: AttributeField) -> Enum | None:
        return getattr(self, field.value)

    @property
    def is_unconstrained(self) -> bool:
        return all(self.get(f) is None for f in AttributeField)
