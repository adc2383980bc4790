import unittest

from atmfjstc.lib.pak_file import PakHeader, PakFileEntry, PakFileListHeader, PakCompressionMethod, \
    PakFormatError, NotAPakFileError

from pak_fixtures import make_entry, raw_name


HEADER_BYTES = (
    b'LSPK'
    + (18).to_bytes(4, 'little')
    + (0x0123456789).to_bytes(8, 'little')
    + (1234).to_bytes(4, 'little')
    + b'\x05'
    + b'\x07'
    + bytes(range(16, 32))
    + (3).to_bytes(2, 'little')
)


class PakHeaderTest(unittest.TestCase):
    def test_decode(self):
        header = PakHeader.from_bytes(HEADER_BYTES)

        self.assertEqual(header, PakHeader(
            version=18,
            file_list_offset=0x0123456789,
            file_list_size=1234,
            flags=5,
            priority=7,
            checksum=bytes(range(16, 32)),
            num_parts=3,
        ))

    def test_reencode(self):
        self.assertEqual(len(HEADER_BYTES), PakHeader.SIZE)
        self.assertEqual(PakHeader.from_bytes(HEADER_BYTES).to_bytes(), HEADER_BYTES)

    def test_trailing_data_is_ignored(self):
        self.assertEqual(PakHeader.from_bytes(HEADER_BYTES + b'junk').version, 18)

    def test_wrong_magic(self):
        for magic in [b'LSPk', b'\x00\x00\x00\x00', b'PK\x03\x04', b'KPSL', b'\xff\xff\xff\xff']:
            with self.subTest(magic=magic):
                with self.assertRaises(NotAPakFileError):
                    PakHeader.from_bytes(magic + HEADER_BYTES[4:])

    def test_wrong_magic_is_format_error(self):
        with self.assertRaises(PakFormatError):
            PakHeader.from_bytes(b'ABCD' + HEADER_BYTES[4:])

    def test_truncated(self):
        for length in [0, 2, 4, 20, PakHeader.SIZE - 1]:
            with self.subTest(length=length):
                with self.assertRaises(PakFormatError):
                    PakHeader.from_bytes(HEADER_BYTES[:length])

    def test_unknown_version_still_parses(self):
        data = b'LSPK' + (15).to_bytes(4, 'little') + HEADER_BYTES[8:]

        with self.assertLogs('atmfjstc.lib.pak_file', level='WARNING'):
            header = PakHeader.from_bytes(data)

        self.assertEqual(header.version, 15)

    def test_bad_checksum_length(self):
        with self.assertRaises(ValueError):
            PakHeader(
                version=18, file_list_offset=0, file_list_size=0, flags=0, priority=0, checksum=b'short', num_parts=1
            )


class PakFileEntryTest(unittest.TestCase):
    def test_size(self):
        self.assertEqual(PakFileEntry.SIZE, 272)
        self.assertEqual(len(make_entry().to_bytes()), 272)

    def test_name_stops_at_first_nul(self):
        entry = make_entry(raw_name=b'ab\x00c' + b'\x00' * 252)

        self.assertEqual(entry.name, 'ab')

    def test_name_ignores_garbage_after_nul(self):
        entry = make_entry(raw_name=b'Public/x.lsf\x00' + b'\xff' * 243)

        self.assertEqual(entry.name, 'Public/x.lsf')

    def test_name_without_nul(self):
        entry = make_entry(raw_name=b'x' * 256)

        self.assertEqual(entry.name, 'x' * 256)

    def test_name_bytes_map_to_single_chars(self):
        entry = make_entry(raw_name=b'caf\xe9\x00' + b'\x00' * 251)

        self.assertEqual(entry.name, 'café')

    def test_offset_composition(self):
        entry = make_entry(offset_in_file1=0x00000100, offset_in_file2=0x0002)

        self.assertEqual(entry.offset_in_file, 0x0000_0002_0000_0100)

    def test_accessor_methods(self):
        entry = make_entry(raw_name=b'ab\x00c' + b'\x00' * 252, offset_in_file1=0x00000100, offset_in_file2=0x0002)

        self.assertEqual(entry.get_name(), 'ab')
        self.assertEqual(entry.get_offset_in_file(), 0x0000_0002_0000_0100)

    def test_offset_max(self):
        entry = make_entry(offset_in_file1=0xFFFFFFFF, offset_in_file2=0xFFFF)

        self.assertEqual(entry.offset_in_file, (1 << 48) - 1)

    def test_decode(self):
        data = (
            raw_name('Mods/meta.lsx')
            + (0x100).to_bytes(4, 'little')
            + (0x2).to_bytes(2, 'little')
            + b'\x01'
            + b'\x32'
            + (1000).to_bytes(4, 'little')
            + (4000).to_bytes(4, 'little')
        )

        entry = PakFileEntry.from_bytes(data)

        self.assertEqual(entry.name, 'Mods/meta.lsx')
        self.assertEqual(entry.offset_in_file, 0x2_0000_0100)
        self.assertEqual(entry.archive_part, 1)
        self.assertEqual(entry.compression_method, PakCompressionMethod.LZ4)
        self.assertEqual(entry.reserved_bits, 3)
        self.assertEqual(entry.size_on_disk, 1000)
        self.assertEqual(entry.uncompressed_size, 4000)
        self.assertEqual(entry.to_bytes(), data)

    def test_compression_method_uses_low_bits(self):
        for method_byte, expected in [
            (0x00, PakCompressionMethod.NONE),
            (0x01, PakCompressionMethod.ZLIB),
            (0x02, PakCompressionMethod.LZ4),
            (0xF1, PakCompressionMethod.ZLIB),
            (0x42, PakCompressionMethod.LZ4),
        ]:
            with self.subTest(method_byte=method_byte):
                data = bytearray(make_entry().to_bytes())
                data[263] = method_byte

                self.assertEqual(PakFileEntry.from_bytes(data).compression_method, expected)

    def test_unknown_compression_method(self):
        for method_byte in [0x03, 0x0F, 0x2A]:
            with self.subTest(method_byte=method_byte):
                data = bytearray(make_entry().to_bytes())
                data[263] = method_byte

                with self.assertRaises(PakFormatError):
                    PakFileEntry.from_bytes(data)

    def test_truncated(self):
        with self.assertRaises(PakFormatError):
            PakFileEntry.from_bytes(make_entry().to_bytes()[:271])


class PakFileListHeaderTest(unittest.TestCase):
    def test_decode(self):
        list_header = PakFileListHeader.from_bytes(b'\x03\x00\x00\x00\x10\x01\x00\x00')

        self.assertEqual(list_header, PakFileListHeader(num_files=3, compressed_size=0x110))
        self.assertEqual(list_header.decompressed_size, 3 * 272)
        self.assertEqual(list_header.to_bytes(), b'\x03\x00\x00\x00\x10\x01\x00\x00')

    def test_truncated(self):
        with self.assertRaises(PakFormatError):
            PakFileListHeader.from_bytes(b'\x03\x00\x00\x00')
