"""Tests for flowstrap.bootstrap.platform."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from flowstrap.bootstrap import platform as platform_module
from flowstrap.bootstrap.platform import (
    CpuArch,
    OSFamily,
    PlatformEnvironment,
    PlatformIdentity,
    PlatformProbe,
    get_platform_identity,
    resolve_cpu_arch,
    resolve_os_family,
    resolve_runtime_bits,
)
from flowstrap.errors import UnsupportedPlatformError


def _probe(os_name: str, machine: str, data_model: str = "", pointer_bits=None) -> PlatformProbe:
    return PlatformProbe(PlatformEnvironment(os_name, machine, data_model, pointer_bits))


class TestResolveRuntimeBits:
    """Tests for bitness resolution precedence."""

    def test_data_model_wins_over_machine(self) -> None:
        """A 32-bit interpreter on a 64-bit OS is 32-bit."""
        assert resolve_runtime_bits("32", None, "amd64") == 32

    def test_data_model_wins_over_pointer_size(self) -> None:
        assert resolve_runtime_bits("64", 32, "x86") == 64

    def test_pointer_size_used_without_data_model(self) -> None:
        assert resolve_runtime_bits("", 32, "x86_64") == 32

    def test_invalid_data_model_ignored(self) -> None:
        assert resolve_runtime_bits("16", 64, "i686") == 64

    def test_machine_fallback_64(self) -> None:
        assert resolve_runtime_bits("", None, "AMD64") == 64
        assert resolve_runtime_bits("", None, "aarch64") == 64

    def test_machine_fallback_defaults_to_32(self) -> None:
        assert resolve_runtime_bits("", None, "i686") == 32


class TestResolveOsFamily:
    """Tests for OS family mapping."""

    @pytest.mark.parametrize(
        "os_name,expected",
        [
            ("Windows", OSFamily.WINDOWS),
            ("Windows 10", OSFamily.WINDOWS),
            ("Darwin", OSFamily.MACOS),
            ("Mac OS X", OSFamily.MACOS),
            ("Linux", OSFamily.LINUX),
            ("SunOS", OSFamily.UNKNOWN),
            ("FreeBSD", OSFamily.UNKNOWN),
        ],
    )
    def test_mapping(self, os_name: str, expected: OSFamily) -> None:
        assert resolve_os_family(os_name) == expected


class TestResolveCpuArch:
    """Tests for CPU architecture classification."""

    def test_arm64(self) -> None:
        assert resolve_cpu_arch("arm64", 64) == CpuArch.ARM64
        assert resolve_cpu_arch("aarch64", 64) == CpuArch.ARM64

    def test_x64_and_x86(self) -> None:
        assert resolve_cpu_arch("x86_64", 64) == CpuArch.X64
        assert resolve_cpu_arch("AMD64", 32) == CpuArch.X86

    def test_unknown(self) -> None:
        assert resolve_cpu_arch("riscv64", 64) == CpuArch.UNKNOWN


class TestPlatformIdentityTriple:
    """Tests for canonical platform triples."""

    def test_linux_x86_64(self) -> None:
        identity = _probe("Linux", "x86_64", "64").identify()
        assert identity.triple == "linux-x86-64"
        assert identity.platform_extensions == [".so"]

    def test_linux_aarch64(self) -> None:
        identity = _probe("Linux", "aarch64", "64").identify()
        assert identity.triple == "linux-aarch64"
        assert identity.is_arm

    def test_macos_arm64(self) -> None:
        identity = _probe("Darwin", "arm64", "64").identify()
        assert identity.triple == "darwin-aarch64"
        assert identity.platform_extensions == [".dylib"]

    def test_windows_32_bit_interpreter_on_64_bit_os(self) -> None:
        identity = _probe("Windows", "AMD64", "32").identify()
        assert identity.runtime_bits == 32
        assert identity.cpu_arch == CpuArch.X86
        assert identity.triple == "win32-x86"
        assert identity.platform_extensions == [".dll"]

    def test_windows_arm_uses_x86_64_build(self) -> None:
        identity = _probe("Windows", "ARM64", "64").identify()
        assert identity.triple == "win32-x86-64"

    def test_unknown_family_has_no_triple(self) -> None:
        identity = PlatformIdentity(OSFamily.UNKNOWN, CpuArch.X64, 64, "Plan9", "x86_64")
        with pytest.raises(UnsupportedPlatformError):
            _ = identity.triple


class TestPlatformProbe:
    """Tests for PlatformProbe."""

    def test_identify_rejects_unknown_os(self) -> None:
        with pytest.raises(UnsupportedPlatformError) as exc_info:
            _probe("SunOS", "sparc64", "64").identify()
        assert "SunOS" in str(exc_info.value)

    def test_detect_tolerates_unknown_os(self) -> None:
        identity = _probe("SunOS", "sparc64", "64").detect()
        assert identity.os_family == OSFamily.UNKNOWN
        assert identity.runtime_bits == 64

    def test_deterministic(self) -> None:
        probe = _probe("Linux", "x86_64", "64", 64)
        assert probe.identify() == probe.identify()

    def test_from_host_reads_interpreter(self) -> None:
        with patch("flowstrap.bootstrap.platform.platform.architecture", return_value=("32bit", "ELF")), \
             patch("flowstrap.bootstrap.platform.platform.system", return_value="Linux"), \
             patch("flowstrap.bootstrap.platform.platform.machine", return_value="x86_64"):
            env = PlatformEnvironment.from_host()

        assert env.os_name == "Linux"
        assert env.machine == "x86_64"
        assert env.data_model == "32"
        assert PlatformProbe(env).identify().triple == "linux-x86"


class TestGetPlatformIdentity:
    """Tests for the process-wide host identity."""

    @pytest.fixture(autouse=True)
    def fresh_host_identity(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(platform_module, "_host_identity", None)

    def test_detected_once(self) -> None:
        identity = _probe("Linux", "x86_64", "64").detect()
        with patch.object(PlatformProbe, "detect", return_value=identity) as detect:
            first = get_platform_identity()
            second = get_platform_identity(strict=False)

        assert first is second is identity
        detect.assert_called_once_with()

    def test_strict_rejects_unknown_os(self) -> None:
        identity = _probe("SunOS", "sparc64", "64").detect()
        with patch.object(PlatformProbe, "detect", return_value=identity) as detect:
            assert get_platform_identity(strict=False) is identity
            with pytest.raises(UnsupportedPlatformError):
                get_platform_identity()

        detect.assert_called_once_with()
