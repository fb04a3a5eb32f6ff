"""
Architecture/ABI Catalog
========================

The architecture and ABI identifiers the OpenXR loader uses to decorate
active runtime manifest filenames, e.g. active_runtime.aarch64.json.

Per-architecture files let several active runtimes coexist on one host,
one per architecture. The Linux and Windows platforms here only use the
undecorated name, but the mapping is part of the public API.
"""

import platform
import sys
import sysconfig
from enum import Enum
from typing import Dict, Optional, Tuple


# =============================================================================
# Enums
# =============================================================================


class ManifestArchDecoration(Enum):
    """Architecture decorations for active runtime manifest filenames."""

    UNSPECIFIED = "unspecified"    # Architecture not indicated in filename
    X32 = "x32"                    # 64-bit x86 instructions, ILP32 model (32-bit pointers)
    X86_64 = "x86_64"              # 64-bit x86
    I686 = "i686"                  # 32-bit x86
    AARCH64 = "aarch64"            # 64-bit ARM, little endian
    ARMV7A_VFP = "armv7a-vfp"      # 32-bit ARMv7-A, little endian, hard float VFP PCS ABI
    ARMV5TE = "armv5te"            # 32-bit ARMv5TE or compatible, little endian
    MIPS64 = "mips64"              # 64-bit MIPS, little endian
    MIPS = "mips"                  # 32-bit MIPS, little endian
    PPC64 = "ppc64"                # 64-bit PowerPC, big endian
    PPC64EL = "ppc64el"            # 64-bit POWER8/POWER9, little endian (ELF ABI v2)
    S390X = "s390x"                # 64-bit S390/z-Series, big endian
    HPPA = "hppa"                  # 32-bit HP PA-RISC, big endian
    ALPHA = "alpha"                # 64-bit Alpha
    IA64 = "ia64"                  # 64-bit IA-64
    M68K = "m68k"                  # 32-bit Motorola 68000-based, big endian
    RISCV64 = "riscv64"            # 64-bit RISC-V, little endian
    SPARC64 = "sparc64"            # 64-bit SPARC
    LOONGARCH64 = "loongarch64"    # 64-bit LoongArch, little endian (LP64D ABI)

    @property
    def filename(self) -> str:
        """The decorated active runtime filename for this architecture."""
        if self is ManifestArchDecoration.UNSPECIFIED:
            return "active_runtime.json"
        return f"active_runtime.{self.value}.json"


class RuntimeArchAbi(Enum):
    """
    A concrete runtime architecture/ABI.

    Same set as ManifestArchDecoration, minus UNSPECIFIED.
    """

    X32 = "x32"
    X86_64 = "x86_64"
    I686 = "i686"
    AARCH64 = "aarch64"
    ARMV7A_VFP = "armv7a-vfp"
    ARMV5TE = "armv5te"
    MIPS64 = "mips64"
    MIPS = "mips"
    PPC64 = "ppc64"
    PPC64EL = "ppc64el"
    S390X = "s390x"
    HPPA = "hppa"
    ALPHA = "alpha"
    IA64 = "ia64"
    M68K = "m68k"
    RISCV64 = "riscv64"
    SPARC64 = "sparc64"
    LOONGARCH64 = "loongarch64"

    def to_decoration(self) -> ManifestArchDecoration:
        return ManifestArchDecoration(self.value)

    @property
    def filename(self) -> str:
        return self.to_decoration().filename


# =============================================================================
# Current Architecture Detection
# =============================================================================

# platform.machine() values (lowercased) -> (64-bit pointers tag, 32-bit pointers tag).
# The 32-bit tag covers 32-bit interpreters running on 64-bit kernels
# (except x32, see get_current_arch).
_MACHINE_MAP: Dict[str, Tuple[Optional[RuntimeArchAbi], Optional[RuntimeArchAbi]]] = {
    "x86_64": (RuntimeArchAbi.X86_64, RuntimeArchAbi.I686),
    "amd64": (RuntimeArchAbi.X86_64, RuntimeArchAbi.I686),
    "i386": (None, RuntimeArchAbi.I686),
    "i486": (None, RuntimeArchAbi.I686),
    "i586": (None, RuntimeArchAbi.I686),
    "i686": (None, RuntimeArchAbi.I686),
    "x86": (None, RuntimeArchAbi.I686),
    "aarch64": (RuntimeArchAbi.AARCH64, RuntimeArchAbi.ARMV7A_VFP),
    "arm64": (RuntimeArchAbi.AARCH64, RuntimeArchAbi.ARMV7A_VFP),
    "armv7l": (None, RuntimeArchAbi.ARMV7A_VFP),
    "armv7a": (None, RuntimeArchAbi.ARMV7A_VFP),
    "armv5tel": (None, RuntimeArchAbi.ARMV5TE),
    "armv5tejl": (None, RuntimeArchAbi.ARMV5TE),
    "mips64": (RuntimeArchAbi.MIPS64, RuntimeArchAbi.MIPS),
    "mips": (None, RuntimeArchAbi.MIPS),
    "ppc64": (RuntimeArchAbi.PPC64, None),
    "ppc64le": (RuntimeArchAbi.PPC64EL, None),
    "s390x": (RuntimeArchAbi.S390X, None),
    "parisc": (None, RuntimeArchAbi.HPPA),
    "alpha": (RuntimeArchAbi.ALPHA, None),
    "ia64": (RuntimeArchAbi.IA64, None),
    "m68k": (None, RuntimeArchAbi.M68K),
    "riscv64": (RuntimeArchAbi.RISCV64, None),
    "sparc64": (RuntimeArchAbi.SPARC64, None),
    "loongarch64": (RuntimeArchAbi.LOONGARCH64, None),
}


def is_64bit_process() -> bool:
    """Does the running interpreter use 64-bit pointers?"""
    return sys.maxsize > 2**32


def get_multiarch() -> str:
    """Debian-style multiarch triplet of the interpreter build, or "" if unknown."""
    return sysconfig.get_config_var("MULTIARCH") or ""


def get_current_arch(
    machine: Optional[str] = None,
    is_64bit: Optional[bool] = None,
    multiarch: Optional[str] = None,
) -> Optional[RuntimeArchAbi]:
    """
    Map the running interpreter's architecture to a RuntimeArchAbi.

    Args:
        machine: Override for platform.machine() (for testing)
        is_64bit: Override for the interpreter's pointer width
        multiarch: Override for the interpreter's multiarch triplet

    Returns:
        The matching tag, or None if the architecture is not in the catalog
    """
    if machine is None:
        machine = platform.machine()
    if is_64bit is None:
        is_64bit = is_64bit_process()

    entry = _MACHINE_MAP.get(machine.lower())
    if entry is None:
        return None
    wide, narrow = entry
    if is_64bit:
        return wide

    if machine.lower() in ("x86_64", "amd64"):
        if multiarch is None:
            multiarch = get_multiarch()
        # x32 userlands also report an x86_64 kernel; only the build triplet tells them apart
        if multiarch.endswith("gnux32"):
            return RuntimeArchAbi.X32
    return narrow
