"""Tests for asset file name attribute parsing."""

import pytest

from mingw_dl.core.attributes import parse_asset_name
from mingw_dl.models.attributes import (
    Arch,
    AttributeSet,
    CRuntime,
    ExceptionModel,
    RuntimeVersion,
    ThreadModel,
)


class TestParseAssetName:
    def test_full_x86_64_name(self):
        attrs = parse_asset_name("x86_64-13.0.0-release-posix-seh-ucrt-rt_v13-rev1.7z")
        assert attrs == AttributeSet(
            arch=Arch.X86_64,
            thread_model=ThreadModel.POSIX,
            exception_model=ExceptionModel.SEH,
            c_runtime=CRuntime.UCRT,
            runtime_version=RuntimeVersion.V13,
        )

    def test_i686_dwarf_msvcrt(self):
        attrs = parse_asset_name("i686-12.2.0-release-win32-dwarf-msvcrt-rt_v10-rev2.7z")
        assert attrs.arch is Arch.I686
        assert attrs.thread_model is ThreadModel.WIN32
        assert attrs.exception_model is ExceptionModel.DWARF
        assert attrs.c_runtime is CRuntime.MSVCRT
        # only rt_v13 is a recognized runtime version
        assert attrs.runtime_version is RuntimeVersion.UNKNOWN

    def test_mcf_thread_model(self):
        attrs = parse_asset_name("x86_64-14.1.0-release-mcf-seh-ucrt-rt_v12-rev0.7z")
        assert attrs.thread_model is ThreadModel.MCF

    def test_rt_v13_before_extension(self):
        attrs = parse_asset_name("x86_64-13.1.0-release-posix-seh-ucrt-rt_v13.7z")
        assert attrs.runtime_version is RuntimeVersion.V13

    @pytest.mark.parametrize(
        "name",
        [
            "",
            "README.md",
            "source-code.tar.gz",
            "mingw-w64-v11.0.0.zip",
            "posixsehucrt.txt",
        ],
    )
    def test_unrecognized_names_are_all_unknown(self, name):
        attrs = parse_asset_name(name)
        assert attrs.is_unknown
        assert attrs == AttributeSet()

    def test_x86_64_prefix_wins_over_later_i686(self):
        attrs = parse_asset_name("x86_64-i686-cross-posix-seh.7z")
        assert attrs.arch is Arch.X86_64

    def test_arch_is_only_read_from_prefix(self):
        attrs = parse_asset_name("gcc-x86_64-13.0.0-release-posix-seh.7z")
        assert attrs.arch is Arch.UNKNOWN
        assert attrs.thread_model is ThreadModel.POSIX

    def test_first_token_in_priority_order_wins(self):
        attrs = parse_asset_name("x86_64-odd-win32-posix-dwarf-seh-rev0.7z")
        assert attrs.thread_model is ThreadModel.POSIX
        assert attrs.exception_model is ExceptionModel.SEH

    def test_substring_without_delimiters_is_ignored(self):
        attrs = parse_asset_name("x86_64-13.0.0-release-posixseh-ucrt-rev1.7z")
        assert attrs.thread_model is ThreadModel.UNKNOWN
        assert attrs.exception_model is ExceptionModel.UNKNOWN
        assert attrs.c_runtime is CRuntime.UCRT
