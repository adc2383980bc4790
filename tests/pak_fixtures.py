"""
Helpers for building small PAK archives in memory, for use as test fixtures.
"""

import zlib

from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple

import lz4.block

from atmfjstc.lib.pak_file import PakHeader, PakFileEntry, PakFileListHeader, PakCompressionMethod


@dataclass(frozen=True)
class FixtureFile:
    name: str
    content: bytes
    method: PakCompressionMethod = PakCompressionMethod.LZ4
    part: int = 0
    reserved_bits: int = 0


@dataclass(frozen=True)
class FixtureArchive:
    header: PakHeader
    entries: List[PakFileEntry]
    parts: Dict[int, bytes]

    @property
    def data(self) -> bytes:
        return self.parts[0]


def compress_payload(method: PakCompressionMethod, content: bytes) -> bytes:
    if method == PakCompressionMethod.NONE:
        return content
    if method == PakCompressionMethod.ZLIB:
        compressor = zlib.compressobj(wbits=-zlib.MAX_WBITS)
        return compressor.compress(content) + compressor.flush()

    return lz4.block.compress(content, store_size=False)


def raw_name(name: str) -> bytes:
    return name.encode('latin-1').ljust(PakFileEntry.NAME_SIZE, b'\x00')


def make_entry(name: str = 'a.txt', **kwargs) -> PakFileEntry:
    fields = dict(
        raw_name=raw_name(name),
        offset_in_file1=0,
        offset_in_file2=0,
        archive_part=0,
        compression_method=PakCompressionMethod.NONE,
        size_on_disk=0,
        uncompressed_size=0,
    )
    fields.update(kwargs)

    return PakFileEntry(**fields)


def compress_file_list(entries: Iterable[PakFileEntry]) -> Tuple[PakFileListHeader, bytes]:
    entries = list(entries)
    compressed = lz4.block.compress(b''.join(entry.to_bytes() for entry in entries), store_size=False)

    return PakFileListHeader(num_files=len(entries), compressed_size=len(compressed)), compressed


def build_archive(
    files: Iterable[FixtureFile], version: int = 18, flags: int = 0, priority: int = 0,
    checksum: bytes = bytes(range(16))
) -> FixtureArchive:
    parts = {0: bytearray(PakHeader.SIZE)}
    entries = []

    for fixture_file in files:
        part_data = parts.setdefault(fixture_file.part, bytearray())
        payload = compress_payload(fixture_file.method, fixture_file.content)
        offset = len(part_data)
        part_data += payload

        entries.append(PakFileEntry(
            raw_name=raw_name(fixture_file.name),
            offset_in_file1=offset & 0xFFFFFFFF,
            offset_in_file2=offset >> 32,
            archive_part=fixture_file.part,
            compression_method=fixture_file.method,
            size_on_disk=len(payload),
            uncompressed_size=len(fixture_file.content),
            reserved_bits=fixture_file.reserved_bits,
        ))

    list_header, compressed_list = compress_file_list(entries)
    file_list_region = list_header.to_bytes() + compressed_list

    main_part = parts[0]
    header = PakHeader(
        version=version,
        file_list_offset=len(main_part),
        file_list_size=len(file_list_region),
        flags=flags,
        priority=priority,
        checksum=checksum,
        num_parts=len(parts),
    )

    main_part += file_list_region
    main_part[:PakHeader.SIZE] = header.to_bytes()

    return FixtureArchive(
        header=header,
        entries=entries,
        parts={part: bytes(data) for part, data in parts.items()},
    )
