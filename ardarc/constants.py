import struct


# Header file scalar layout (little-endian 32-bit words)
HEADER_WORD_SIZE = 4
HEADER_KEY_WORD = 9
HEADER_KEY_SENTINEL = 0xF3F35353  # word 9 after decryption
HEADER_SIZE = (HEADER_KEY_WORD + 1) * HEADER_WORD_SIZE  # 40 bytes

# word 0 magic, words 1..8 int32 scalars, word 9 protected key
HEADER_STRUCT = struct.Struct("<4s8iI")

# Node table: (int32 next, int32 prev) per slot
NODE_STRUCT = struct.Struct("<ii")
ROOT_NODE = 0

# File table: int64 offset, int32 compressed, int32 uncompressed, int32 type, int32 id
FILE_RECORD_STRUCT = struct.Struct("<qiiii")
FILE_RECORD_COMPRESSED_FIELD = 8
FILE_RECORD_UNCOMPRESSED_FIELD = 12

# String table: file identifier stored after each NUL-terminated suffix
FILE_ID_STRUCT = struct.Struct("<i")


# Entry types (0=stored, 1=compressed, 2=compressed and replaceable)
ENTRY_TYPE_STORED = 0
ENTRY_TYPE_COMPRESSED = 1
ENTRY_TYPE_REPLACEABLE = 2

# Compressed payload layout in the data file
PAYLOAD_PREFIX_SIZE = 0x30
PAYLOAD_SIZES_OFFSET = 8
PAYLOAD_SIZES_STRUCT = struct.Struct("<II")  # uncompressed, compressed

COPY_BUFFER_SIZE = 1_048_576  # 1 MiB


# Archive facade states
STATE_UNOPENED = "unopened"
STATE_OPEN = "open"
STATE_CLOSED = "closed"
