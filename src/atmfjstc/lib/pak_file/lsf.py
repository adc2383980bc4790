"""
Support for the header of LSF documents, a binary document format commonly stored inside PAK archives.

Only the header is decoded, which is enough to classify documents by their format version.
"""

import logging
import struct

from collections import Counter
from dataclasses import dataclass
from typing import ClassVar, Union, Optional, List, Tuple, TYPE_CHECKING

from atmfjstc.lib.binary_utils.BinaryReader import BinaryReader, BinaryReaderFormatError, BinaryReaderWrongMagicError

from .errors import PakError, LsfFormatError
from .structs import PakFileEntry

if TYPE_CHECKING:
    from . import PakFile


LOG = logging.getLogger(__name__)


LSF_MAGIC = b'LSOF'

LSF_EXTENSION = '.lsf'


@dataclass(frozen=True)
class LsfHeader:
    version: int

    SIZE: ClassVar[int] = 8

    @staticmethod
    def read_from_binary(reader: BinaryReader) -> 'LsfHeader':
        try:
            reader.expect_magic(LSF_MAGIC, 'LSF magic')
            version = reader.read_fixed_size_int(4, 'LSF version')
        except BinaryReaderWrongMagicError as e:
            raise LsfFormatError("Data is not an LSF document") from e
        except BinaryReaderFormatError as e:
            raise LsfFormatError("Data is too short to contain an LSF header") from e

        return LsfHeader(version=version)

    @staticmethod
    def from_bytes(data: Union[bytes, bytearray, memoryview]) -> 'LsfHeader':
        return LsfHeader.read_from_binary(BinaryReader(bytes(data), big_endian=False))

    def to_bytes(self) -> bytes:
        return LSF_MAGIC + struct.pack('<I', self.version)


def is_lsf_name(name: str) -> bool:
    return name.endswith(LSF_EXTENSION)


def tally_lsf_versions(
    pak_file: 'PakFile', mut_failures: Optional[List[Tuple[PakFileEntry, PakError]]] = None
) -> Counter:
    """
    Counts the LSF documents in an archive by their declared format version.

    Only entries whose name ends in ``.lsf`` are considered. Entries that cannot be read or that do not hold a valid
    LSF header are skipped (and logged) without affecting the others.

    Args:
        pak_file: An open `PakFile`.
        mut_failures: If provided, (entry, error) pairs for the skipped entries are appended to this list.

    Returns:
        A `Counter` mapping each version to the number of documents declaring it.
    """
    tally = Counter()

    for entry in pak_file.entries:
        if not is_lsf_name(entry.name):
            continue

        try:
            header = LsfHeader.from_bytes(pak_file.read(entry))
        except PakError as e:
            LOG.warning(f"Skipping '{entry.name}': {e}")
            if mut_failures is not None:
                mut_failures.append((entry, e))
            continue

        tally[header.version] += 1

    return tally
