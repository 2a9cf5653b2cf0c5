# Block geometry
BLOCK_SIZE = 512
FOOTER_BLOCKS = 2
FOOTER_SIZE = BLOCK_SIZE * FOOTER_BLOCKS  # 1024 zero bytes end the archive

# Streaming copy granularity (multiple of BLOCK_SIZE)
COPY_CHUNK_SIZE = 64 * 1024

# ustar identification
MAGIC = b"ustar\x00"   # 6 bytes: "ustar\0"
VERSION = b"00"        # 2 bytes, not NUL-terminated

# Type flags; only regular files are produced
REGTYPE = b"0"

# Header field layout: name -> (offset, width)
FIELD_NAME = (0, 100)
FIELD_MODE = (100, 8)
FIELD_UID = (108, 8)
FIELD_GID = (116, 8)
FIELD_SIZE = (124, 12)
FIELD_MTIME = (136, 12)
FIELD_CHKSUM = (148, 8)
FIELD_TYPEFLAG = (156, 1)
FIELD_LINKNAME = (157, 100)
FIELD_MAGIC = (257, 6)
FIELD_VERSION = (263, 2)
FIELD_UNAME = (265, 32)
FIELD_GNAME = (297, 32)
FIELD_DEVMAJOR = (329, 8)
FIELD_DEVMINOR = (337, 8)
FIELD_PREFIX = (345, 155)

UINT32_MASK = 0xFFFFFFFF
