"""
Binary structures of the PAK archive format: the archive header, the file list header and the file list records.

All integers are little-endian. The layout of the archive is::

    offset 0:                 PakHeader (40 bytes)
    ...                       entry payloads, at the offsets declared in the file list
    header.file_list_offset:  PakFileListHeader (8 bytes)
                              LZ4 block-compressed file list (num_files * 272 bytes once decompressed)
"""

import logging
import struct

from dataclasses import dataclass
from os import SEEK_SET
from typing import ClassVar, Iterator, Tuple, Union

from atmfjstc.lib.binary_utils.BinaryReader import BinaryReader, BinaryReaderFormatError, BinaryReaderWrongMagicError

from .compression import PakCompressionMethod, decompress_block, decompress_lz4_block
from .errors import PakFormatError, NotAPakFileError, PakFileEntryDecodeError


LOG = logging.getLogger(__name__)


PAK_MAGIC = b'LSPK'

KNOWN_PAK_VERSIONS = frozenset({18})


BytesLike = Union[bytes, bytearray, memoryview]


@dataclass(frozen=True)
class PakHeader:
    """
    The fixed header found at the start of every PAK archive.

    Attributes:
        version: The version of the archive format. Only version 18 is known to use this layout.
        file_list_offset: The absolute offset of the file list region in the (main) archive file.
        file_list_size: The total size of the file list region, including its 8-byte `PakFileListHeader`.
        flags: Archive flags (not interpreted)
        priority: Load priority of the archive (not interpreted)
        checksum: A 16-byte MD5 checksum. It is preserved, but never verified.
        num_parts: The number of physical files (volumes) the archive is split over.
    """

    version: int
    file_list_offset: int
    file_list_size: int
    flags: int
    priority: int
    checksum: bytes
    num_parts: int

    SIZE: ClassVar[int] = 40
    _BODY_FORMAT: ClassVar[str] = '<IQIBB16sH'

    def __post_init__(self):
        if len(self.checksum) != 16:
            raise ValueError(f"Checksum must be 16 bytes long, is {len(self.checksum)}")

    @staticmethod
    def read_from_binary(reader: BinaryReader) -> 'PakHeader':
        try:
            reader.expect_magic(PAK_MAGIC, 'PAK magic')
            version, file_list_offset, file_list_size, flags, priority, checksum, num_parts = \
                reader.read_struct(PakHeader._BODY_FORMAT, 'PAK header')
        except BinaryReaderWrongMagicError as e:
            raise NotAPakFileError() from e
        except BinaryReaderFormatError as e:
            raise PakFormatError("Data is too short to contain a PAK header") from e

        if version not in KNOWN_PAK_VERSIONS:
            LOG.warning(f"PAK archive has unknown version {version}, attempting to read it anyway")

        return PakHeader(
            version=version,
            file_list_offset=file_list_offset,
            file_list_size=file_list_size,
            flags=flags,
            priority=priority,
            checksum=checksum,
            num_parts=num_parts,
        )

    @staticmethod
    def from_bytes(data: BytesLike) -> 'PakHeader':
        return PakHeader.read_from_binary(BinaryReader(bytes(data), big_endian=False))

    def to_bytes(self) -> bytes:
        return PAK_MAGIC + struct.pack(
            PakHeader._BODY_FORMAT,
            self.version, self.file_list_offset, self.file_list_size, self.flags, self.priority, self.checksum,
            self.num_parts,
        )


@dataclass(frozen=True)
class PakFileEntry:
    """
    A record in the file list of a PAK archive, describing one stored file.

    Objects of this type are inert data containers, independent of the `PakFile` they came from.

    Attributes:
        raw_name: The fixed 256-byte name buffer, exactly as stored. Use `name` for the actual name.
        offset_in_file1: The low 32 bits of the payload offset. Use `offset_in_file` for the full offset.
        offset_in_file2: The high 16 bits of the payload offset.
        archive_part: The index of the physical archive file (volume) that holds the payload.
        compression_method: A `PakCompressionMethod` for the payload.
        size_on_disk: The size of the stored (usually compressed) payload.
        uncompressed_size: The declared size of the file content.
        reserved_bits: The upper 4 bits of the byte holding the compression method, preserved as-is.
    """

    raw_name: bytes
    offset_in_file1: int
    offset_in_file2: int
    archive_part: int
    compression_method: PakCompressionMethod
    size_on_disk: int
    uncompressed_size: int
    reserved_bits: int = 0

    SIZE: ClassVar[int] = 256 + 4 + 2 + 1 + 1 + 4 + 4
    NAME_SIZE: ClassVar[int] = 256
    _FORMAT: ClassVar[str] = '<256sIHBBII'

    @property
    def name(self) -> str:
        """
        The name of the file: the characters of the name buffer up to the first NUL byte, one character per byte.
        """
        null_pos = self.raw_name.find(b'\x00')

        return (self.raw_name if null_pos == -1 else self.raw_name[:null_pos]).decode('latin-1')

    @property
    def offset_in_file(self) -> int:
        """
        The full 48-bit offset of the payload within its archive part.
        """
        return self.offset_in_file1 | (self.offset_in_file2 << 32)

    def get_name(self) -> str:
        return self.name

    def get_offset_in_file(self) -> int:
        return self.offset_in_file

    def decompress(self, data: BytesLike) -> bytes:
        """
        Recovers the content of this file from its stored payload.

        Args:
            data: The payload, as read from archive part `archive_part` at `offset_in_file`. It must be at least
                `size_on_disk` bytes long; any data beyond that is ignored.

        Returns:
            The file content, exactly `uncompressed_size` bytes long.

        Raises:
            PakFormatError: If `data` is shorter than the payload.
            PakDecompressError: If the payload is corrupt or does not decompress to the declared size.
        """
        if len(data) < self.size_on_disk:
            raise PakFormatError(
                f"Payload for '{self.name}' should be {self.size_on_disk} bytes long, but only {len(data)} bytes "
                f"were supplied"
            )

        if self.compression_method != PakCompressionMethod.NONE:
            data = data[:self.size_on_disk]

        return decompress_block(self.compression_method, data, self.uncompressed_size)

    @staticmethod
    def read_from_binary(reader: BinaryReader) -> 'PakFileEntry':
        start_pos = reader.tell()

        try:
            raw_name, offset1, offset2, archive_part, method_byte, size_on_disk, uncompressed_size = \
                reader.read_struct(PakFileEntry._FORMAT, 'PAK file entry')
        except BinaryReaderFormatError as e:
            raise PakFormatError("File list record is truncated") from e

        if reader.tell() - start_pos != PakFileEntry.SIZE:
            raise PakFormatError(
                f"File list record consumed {reader.tell() - start_pos} bytes instead of {PakFileEntry.SIZE}"
            )

        method_id = method_byte & 0x0F

        try:
            compression_method = PakCompressionMethod(method_id)
        except ValueError as e:
            raise PakFormatError(f"Unknown compression method {method_id} in file list record") from e

        return PakFileEntry(
            raw_name=raw_name,
            offset_in_file1=offset1,
            offset_in_file2=offset2,
            archive_part=archive_part,
            compression_method=compression_method,
            size_on_disk=size_on_disk,
            uncompressed_size=uncompressed_size,
            reserved_bits=method_byte >> 4,
        )

    @staticmethod
    def from_bytes(data: BytesLike) -> 'PakFileEntry':
        return PakFileEntry.read_from_binary(BinaryReader(bytes(data), big_endian=False))

    def to_bytes(self) -> bytes:
        return struct.pack(
            PakFileEntry._FORMAT,
            self.raw_name, self.offset_in_file1, self.offset_in_file2, self.archive_part,
            (self.reserved_bits << 4) | int(self.compression_method), self.size_on_disk, self.uncompressed_size,
        )


@dataclass(frozen=True)
class PakFileListHeader:
    """
    The small header preceding the compressed file list.

    Attributes:
        num_files: The number of records in the file list.
        compressed_size: The size of the LZ4-compressed file list that immediately follows this header.
    """

    num_files: int
    compressed_size: int

    SIZE: ClassVar[int] = 8
    _FORMAT: ClassVar[str] = '<II'

    @property
    def decompressed_size(self) -> int:
        return self.num_files * PakFileEntry.SIZE

    @staticmethod
    def read_from_binary(reader: BinaryReader) -> 'PakFileListHeader':
        try:
            num_files, compressed_size = reader.read_struct(PakFileListHeader._FORMAT, 'PAK file list header')
        except BinaryReaderFormatError as e:
            raise PakFormatError("Data is too short to contain a file list header") from e

        return PakFileListHeader(num_files=num_files, compressed_size=compressed_size)

    @staticmethod
    def from_bytes(data: BytesLike) -> 'PakFileListHeader':
        return PakFileListHeader.read_from_binary(BinaryReader(bytes(data), big_endian=False))

    def to_bytes(self) -> bytes:
        return struct.pack(PakFileListHeader._FORMAT, self.num_files, self.compressed_size)

    def decompress(self, compressed_file_list: BytesLike) -> Tuple[PakFileEntry, ...]:
        """
        Decompresses the file list and decodes all of its records at once.

        Args:
            compressed_file_list: The data following this header. At least `compressed_size` bytes must be present;
                anything beyond that is ignored.

        Returns:
            All the entries, in the order they appear in the file list.

        Raises:
            PakFormatError: If the data is too short.
            PakDecompressError: If the file list is corrupt or does not decompress to exactly `num_files` records.
            PakFileEntryDecodeError: If any record is malformed.
        """
        reader = BinaryReader(self._decompress_file_list(compressed_file_list), big_endian=False)

        entries = tuple(_read_indexed_entry(reader, index) for index in range(self.num_files))

        if reader.bytes_remaining() > 0:
            raise PakFormatError(f"{reader.bytes_remaining()} bytes were left over after the last file list record")

        return entries

    def decompress_iter(self, compressed_file_list: BytesLike) -> 'PakFileEntryIterator':
        """
        Like `decompress`, but records are decoded one at a time, as they are requested.

        The file list is still decompressed up front, so codec errors are raised here rather than during iteration.
        See `PakFileEntryIterator` for how malformed records are handled.
        """
        return PakFileEntryIterator(self._decompress_file_list(compressed_file_list), self.num_files)

    def _decompress_file_list(self, compressed_file_list: BytesLike) -> bytes:
        if len(compressed_file_list) < self.compressed_size:
            raise PakFormatError(
                f"File list should be {self.compressed_size} bytes long, but only {len(compressed_file_list)} bytes "
                f"are available"
            )

        return decompress_lz4_block(compressed_file_list[:self.compressed_size], self.decompressed_size)


class PakFileEntryIterator(Iterator[PakFileEntry]):
    """
    A single-pass iterator over the records of a decompressed file list, decoding each record when it is requested.

    Exactly `num_files` items are produced. If a record cannot be decoded, the corresponding call to `next()` raises
    a `PakFileEntryDecodeError`, but the iterator is not exhausted: the cursor has already moved past the bad record,
    so the following call returns the next one. A plain ``for`` loop stops at the first error; to skip past bad
    records, drive the iterator with `next()` directly.

    Do not share an iterator between threads.
    """

    _reader: BinaryReader
    _num_files: int
    _current_file: int

    def __init__(self, decompressed_file_list: BytesLike, num_files: int):
        expected_size = num_files * PakFileEntry.SIZE
        if len(decompressed_file_list) != expected_size:
            raise PakFormatError(
                f"Decompressed file list is {len(decompressed_file_list)} bytes long, but {num_files} records "
                f"require exactly {expected_size} bytes"
            )

        self._reader = BinaryReader(bytes(decompressed_file_list), big_endian=False)
        self._num_files = num_files
        self._current_file = 0

    def __iter__(self) -> 'PakFileEntryIterator':
        return self

    def __next__(self) -> PakFileEntry:
        if self._current_file >= self._num_files:
            raise StopIteration

        index = self._current_file
        self._current_file += 1

        self._reader.seek(index * PakFileEntry.SIZE, SEEK_SET)

        return _read_indexed_entry(self._reader, index)

    def __len__(self) -> int:
        return self._num_files - self._current_file


def _read_indexed_entry(reader: BinaryReader, index: int) -> PakFileEntry:
    try:
        return PakFileEntry.read_from_binary(reader)
    except PakFormatError as e:
        raise PakFileEntryDecodeError(index) from e


def read_file_list_region(region: BytesLike) -> Tuple[PakFileListHeader, bytes]:
    """
    Splits the file list region of an archive (`file_list_size` bytes read at `file_list_offset`) into the file list
    header and the compressed file list.

    Raises:
        PakFormatError: If the region is too short for the header, or for the compressed size it declares.
    """
    reader = BinaryReader(bytes(region), big_endian=False)

    list_header = PakFileListHeader.read_from_binary(reader)

    if list_header.compressed_size > reader.bytes_remaining():
        raise PakFormatError(
            f"File list region holds {reader.bytes_remaining()} bytes of compressed data, but the file list "
            f"header declares {list_header.compressed_size}"
        )

    return list_header, reader.read_amount(list_header.compressed_size, 'compressed file list')
