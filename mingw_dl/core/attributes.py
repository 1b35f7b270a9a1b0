"""
Parses the build attributes encoded in MinGW-w64 asset file names, e.g.
`x86_64-13.2.0-release-posix-seh-ucrt-rt_v11-rev1.7z`.
"""

from mingw_dl.models.attributes import (
    Arch,
    AttributeSet,
    CRuntime,
    ExceptionModel,
    RuntimeVersion,
    ThreadModel,
)

# Architecture is only ever taken from the start of the name.
_ARCH_PREFIXES = (
    ("i686-", Arch.I686),
    ("x86_64-", Arch.X86_64),
)

# Delimited tokens per field, in priority order (first match wins).
_THREAD_TOKENS = (
    ("-posix-", ThreadModel.POSIX),
    ("-win32-", ThreadModel.WIN32),
    ("-mcf-", ThreadModel.MCF),
)
_EXCEPTION_TOKENS = (
    ("-seh-", ExceptionModel.SEH),
    ("-dwarf-", ExceptionModel.DWARF),
)
_CRT_TOKENS = (
    ("-ucrt-", CRuntime.UCRT),
    ("-msvcrt-", CRuntime.MSVCRT),
)
_RUNTIME_TOKENS = (
    ("-rt_v13-", RuntimeVersion.V13),
    ("-rt_v13.", RuntimeVersion.V13),
)


def _first_match(name: str, tokens, default):
    for token, value in tokens:
        if token in name:
            return value
    return default


def parse_asset_name(name: str) -> AttributeSet:
    """
    Derives an AttributeSet from a file name.

    Never fails: fields whose tokens are absent stay UNKNOWN, so an unrelated
    file name yields an all-UNKNOWN set.
    """
    arch = Arch.UNKNOWN
    for prefix, value in _ARCH_PREFIXES:
        if name.startswith(prefix):
            arch = value
            break

    return AttributeSet(
        arch=arch,
        thread_model=_first_match(name, _THREAD_TOKENS, ThreadModel.UNKNOWN),
        exception_model=_first_match(
            name, _EXCEPTION_TOKENS, ExceptionModel.UNKNOWN
        ),
        c_runtime=_first_match(name, _CRT_TOKENS, CRuntime.UNKNOWN),
        runtime_version=_first_match(name, _RUNTIME_TOKENS, RuntimeVersion.UNKNOWN),
    )
