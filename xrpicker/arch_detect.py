"""
Runtime Bitness Detection
=========================

Classifies the library a manifest points to as 32- or 64-bit by parsing
its object header with LIEF.

Only needed where the OS keeps separate native and narrow (WOW64)
registrations and the manifest's location does not say which one it
belongs to, i.e. user-supplied manifests on Windows.

A manifest whose library is found through the dynamic library search path
is "Universal": the OS loader picks the right variant per process, so the
bitness does not matter.
"""

import logging
from enum import Enum, auto
from pathlib import Path
from typing import Optional, Union

import lief

from .errors import RuntimeBinaryLoadError
from .runtime import BaseRuntime

logger = logging.getLogger("xrpicker")


class RuntimeBitness(Enum):
    UNIVERSAL = auto()       # Uses the library search path to find the right binary per arch
    BIT_WIDTH_32 = auto()    # Points to a 32-bit runtime
    BIT_WIDTH_64 = auto()    # Points to a 64-bit runtime


def get_runtime_bitness(manifest_path: Union[str, Path]) -> RuntimeBitness:
    """
    Determine the bitness of the runtime described by a manifest.

    Raises:
        ManifestIoError, ManifestJsonError, ManifestVersionMismatch:
            If the manifest itself cannot be loaded
        RuntimeBinaryLoadError: If the library exists in principle but
            cannot be read or parsed
    """
    runtime = BaseRuntime.new(manifest_path)
    library_path = runtime.resolve_library_path()
    if not library_path.is_absolute():
        # Can't resolve it to a file, so it must be universal
        return RuntimeBitness.UNIVERSAL
    return get_binary_bitness(library_path)


def get_binary_bitness(library_path: Union[str, Path]) -> RuntimeBitness:
    """Parse an ELF or PE file header and report its bitness."""
    library_path = Path(library_path)
    if not library_path.is_file():
        raise RuntimeBinaryLoadError(str(library_path))

    binary = lief.parse(str(library_path))
    if binary is None:
        raise RuntimeBinaryLoadError(str(library_path))

    is_64 = _binary_is_64bit(binary)
    if is_64 is None:
        logger.debug(f"Unsupported executable format for bitness check: {library_path}")
        raise RuntimeBinaryLoadError(str(library_path))
    return RuntimeBitness.BIT_WIDTH_64 if is_64 else RuntimeBitness.BIT_WIDTH_32


def _binary_is_64bit(binary) -> Optional[bool]:
    if isinstance(binary, lief.ELF.Binary):
        return binary.header.identity_class == lief.ELF.Header.CLASS.ELF64
    if isinstance(binary, lief.PE.Binary):
        return binary.optional_header.magic == lief.PE.PE_TYPE.PE32_PLUS
    return None
