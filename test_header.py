from __future__ import annotations

import os
import struct
import unittest

from ardarc.constants import HEADER_KEY_SENTINEL
from ardarc.errors import CorruptHeader
from ardarc.header import decrypt_header, encrypt_header, parse_header_info


def _words(data: bytes):
    return list(struct.unpack(f"<{len(data) // 4}I", data))


def _raw_header(stored_key: int = 0xABCD1234, tail: bytes = b"") -> bytes:
    # 16 words: string table = words 10-11, node table = words 12-15
    scalars = struct.pack("<4s8iI", b"arh1", 7, 2, 40, 8, 48, 16, 64, 0, stored_key)
    body = tail or bytes(range(0x10, 0x10 + 24))
    return scalars + body


class HeaderCodecTests(unittest.TestCase):
    def test_decrypt_known_key(self):
        raw = _raw_header(0xABCD1234)
        key = 0xABCD1234 ^ 0xF3F35353
        plain, info = decrypt_header(raw)
        self.assertEqual(info.key, key)
        before = _words(raw)
        after = _words(bytes(plain))
        self.assertEqual(after[9], HEADER_KEY_SENTINEL)
        for i in range(10, 16):
            self.assertEqual(after[i], before[i] ^ key)
        for i in range(0, 9):
            self.assertEqual(after[i], before[i])

    def test_scalar_fields(self):
        info = parse_header_info(_raw_header())
        self.assertEqual(info.magic, b"arh1")
        self.assertEqual(info.field4, 7)
        self.assertEqual(info.node_count, 2)
        self.assertEqual((info.string_table_offset, info.string_table_length), (40, 8))
        self.assertEqual((info.node_table_offset, info.node_table_length), (48, 16))
        self.assertEqual((info.file_table_offset, info.file_count), (64, 0))

    def test_encrypt_inverts_decrypt(self):
        raw = _raw_header(0x01020304, os.urandom(24))
        plain, info = decrypt_header(raw)
        self.assertNotEqual(bytes(plain), raw)
        self.assertEqual(encrypt_header(plain, info), raw)

    def test_file_table_left_in_clear(self):
        # File table placed after the node table must not be touched
        scalars = struct.pack("<4s8iI", b"arh1", 0, 0, 40, 4, 44, 0, 44, 1, 0x11111111)
        record = struct.pack("<qiiii", 5, 6, 7, 2, 0)
        raw = scalars + b"\xAA" * 4 + record
        plain, _ = decrypt_header(raw)
        self.assertEqual(bytes(plain[44:]), record)
        self.assertNotEqual(bytes(plain[40:44]), b"\xAA" * 4)

    def test_short_header(self):
        with self.assertRaises(CorruptHeader):
            decrypt_header(b"\x00" * 39)

    def test_region_out_of_range(self):
        raw = struct.pack("<4s8iI", b"arh1", 0, 0, 40, 400, 40, 0, 40, 0, 0)
        with self.assertRaises(CorruptHeader):
            decrypt_header(raw + b"\x00" * 8)

    def test_region_overlapping_scalars(self):
        raw = struct.pack("<4s8iI", b"arh1", 0, 0, 8, 8, 40, 0, 40, 0, 0)
        with self.assertRaises(CorruptHeader):
            decrypt_header(raw)

    def test_negative_field(self):
        raw = struct.pack("<4s8iI", b"arh1", 0, -1, 40, 0, 40, 0, 40, 0, 0)
        with self.assertRaises(CorruptHeader):
            decrypt_header(raw)

    def test_file_table_out_of_range(self):
        raw = struct.pack("<4s8iI", b"arh1", 0, 0, 40, 0, 40, 0, 40, 3, 0)
        with self.assertRaises(CorruptHeader):
            decrypt_header(raw + b"\x00" * 24)


if __name__ == "__main__":
    unittest.main()
