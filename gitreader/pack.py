# pack.py -- For dealing with packed git objects.
# Copyright (C) 2007 James Westby <jw+debian@jameswestby.net>
# Copyright (C) 2008-2013 Jelmer Vernooij <jelmer@jelmer.uk>
#
# SPDX-License-Identifier: Apache-2.0 OR GPL-2.0-or-later
# gitreader is dual-licensed under the Apache License, Version 2.0 and the GNU
# General Public License as published by the Free Software Foundation; version 2.0
# or (at your option) any later version. You can redistribute it and/or
# modify it under the terms of either of these two licenses.
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# You should have received a copy of the licenses; if not, see
# <http://www.gnu.org/licenses/> for a copy of the GNU General Public License
# and <http://www.apache.org/licenses/LICENSE-2.0> for a copy of the Apache
# License, Version 2.0.
#

"""Classes for dealing with packed git objects.

A pack is a compact representation of a bunch of objects, stored
using deltas where possible.

They have two parts, the pack file, which stores the data, and an index
that tells you where the data is.

To find an object you look in all of the index files 'til you find a
match for the object name. You then use the pointer got from this as
a pointer in to the corresponding packfile.

Both files are memory-mapped read-only and every read is a slice of the
mapping, so there is no shared file position between threads.
"""

__all__ = [
    "DEFAULT_DELTA_CACHE_SIZE",
    "DELTA_TYPES",
    "OFS_DELTA",
    "REF_DELTA",
    "Pack",
    "PackData",
    "PackIndex2",
    "UnpackedObject",
    "apply_delta",
    "bisect_find_sha",
    "load_pack_index",
    "load_pack_index_file",
    "read_pack_header",
    "read_zlib_chunks",
    "take_msb_bytes",
    "unpack_object",
]

import binascii
import mmap
import os
import zlib
from collections.abc import Callable, Iterator
from hashlib import sha1
from struct import unpack_from
from types import TracebackType
from typing import IO

from .errors import (
    ApplyDeltaError,
    ChecksumMismatch,
    ObjectFormatException,
    ObjectMissing,
    UnsupportedIndex,
)
from .log_utils import getLogger
from .lru_cache import LRUSizeCache
from .objects import (
    ObjectID,
    RawObjectID,
    ShaFile,
    hex_to_sha,
    object_class,
    sha_to_hex,
)

logger = getLogger(__name__)

OFS_DELTA = 6
REF_DELTA = 7

DELTA_TYPES = (OFS_DELTA, REF_DELTA)

# Bound on the bytes of reconstructed delta bases kept per pack
DEFAULT_DELTA_CACHE_SIZE = 20 * 1024 * 1024

PACK_HEADER_SIZE = 12

INDEX_V2_MAGIC = b"\377tOc"

_ZLIB_BUFSIZE = 65536

# Payload of a pack entry: bytes for full objects, (base offset distance,
# delta) for ofs-deltas and (binary base sha, delta) for ref-deltas.
PackEntryPayload = bytes | tuple[int, bytes] | tuple[bytes, bytes]

ResolveExtRefFn = Callable[[ObjectID], tuple[int, bytes]]


def take_msb_bytes(read: Callable[[int], bytes]) -> list[int]:
    """Read bytes marked with most significant bit.

    Args:
      read: Read function
    Returns: list of the bytes read, the last one without its MSB set
    """
    ret: list[int] = []
    while len(ret) == 0 or ret[-1] & 0x80:
        ret.append(read(1)[0])
    return ret


class _ContentsReader:
    """Sequential reads over a slice of a mapped file."""

    def __init__(self, contents: "bytes | mmap.mmap", offset: int, end: int) -> None:
        self._contents = contents
        self.offset = offset
        self._end = end

    def read(self, size: int) -> bytes:
        """Read exactly size bytes, failing if the data ends early."""
        if self.offset + size > self._end:
            raise ObjectFormatException(
                f"truncated pack entry: wanted {size} bytes at offset {self.offset}"
            )
        data = self._contents[self.offset : self.offset + size]
        self.offset += size
        return data

    def read_some(self, size: int) -> bytes:
        """Read up to size bytes; returns b'' at the end of the data."""
        data = self._contents[self.offset : min(self.offset + size, self._end)]
        self.offset += len(data)
        return data


class UnpackedObject:
    """Class encapsulating an object unpacked from a pack file.

    These objects should only be created from within unpack_object. Most
    members start out as empty and are filled in at various points by
    read_zlib_chunks and unpack_object.
    """

    __slots__ = [
        "decomp_chunks",
        "decomp_len",
        "delta_base",
        "offset",
        "pack_type_num",
    ]

    def __init__(
        self,
        pack_type_num: int,
        *,
        delta_base: int | bytes | None = None,
        decomp_len: int,
        offset: int | None = None,
    ) -> None:
        self.offset = offset
        self.pack_type_num = pack_type_num
        self.delta_base = delta_base
        self.decomp_len = decomp_len
        self.decomp_chunks: list[bytes] = []

    def _obj(self) -> PackEntryPayload:
        """Return the payload in the form PackData.get_object_at uses."""
        data = b"".join(self.decomp_chunks)
        if self.pack_type_num in DELTA_TYPES:
            assert self.delta_base is not None
            return (self.delta_base, data)  # type: ignore[return-value]
        return data

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(offset={self.offset!r}, "
            f"pack_type_num={self.pack_type_num!r}, "
            f"delta_base={self.delta_base!r}, decomp_len={self.decomp_len!r})"
        )


def read_zlib_chunks(
    read_some: Callable[[int], bytes],
    unpacked: UnpackedObject,
    buffer_size: int = _ZLIB_BUFSIZE,
) -> bytes:
    """Read zlib data from a buffer.

    Args:
      read_some: Read function that returns at least one byte, but may
        return less than the requested size; b'' signals the end of data.
      unpacked: An UnpackedObject to write result data to. Its decomp_chunks
        are filled in.
      buffer_size: Size of the read buffer.
    Returns: Leftover unused data from the decompression.
    Raises:
      ObjectFormatException: if the stream is corrupt, ends early, or
        inflates to a size other than unpacked.decomp_len
    """
    decomp_obj = zlib.decompressobj()
    decomp_chunks = unpacked.decomp_chunks
    decomp_len = 0

    while not decomp_obj.eof:
        add = decomp_obj.unconsumed_tail or read_some(buffer_size)
        if not add:
            raise ObjectFormatException("EOF before end of zlib stream")
        # Never inflate more than one byte past the declared size
        max_length = max(unpacked.decomp_len - decomp_len + 1, 1)
        try:
            decomp = decomp_obj.decompress(add, max_length)
        except zlib.error as exc:
            raise ObjectFormatException(f"corrupt zlib stream: {exc}") from exc
        decomp_len += len(decomp)
        if decomp_len > unpacked.decomp_len:
            raise ObjectFormatException(
                f"zlib stream inflates past the declared {unpacked.decomp_len} bytes"
            )
        decomp_chunks.append(decomp)

    if decomp_len != unpacked.decomp_len:
        raise ObjectFormatException(
            f"decompressed {decomp_len} bytes, expected {unpacked.decomp_len}"
        )
    return decomp_obj.unused_data


def unpack_object(
    read_all: Callable[[int], bytes],
    read_some: Callable[[int], bytes] | None = None,
    zlib_bufsize: int = _ZLIB_BUFSIZE,
) -> tuple[UnpackedObject, bytes]:
    """Unpack a Git object.

    Args:
      read_all: Read function that blocks until the number of requested
        bytes are read.
      read_some: Read function that returns at least one byte, but may not
        return the number of bytes requested.
      zlib_bufsize: An optional buffer size for zlib operations.
    Returns: A tuple of (unpacked, unused), where unused is the unused data
        leftover from decompression, and unpacked in an UnpackedObject with
        the following attrs set:

        * pack_type_num
        * delta_base     (for delta types)
        * decomp_chunks
        * decomp_len
    """
    if read_some is None:
        read_some = read_all

    raw = take_msb_bytes(read_all)
    type_num = (raw[0] >> 4) & 0x07
    size = raw[0] & 0x0F
    for i, byte in enumerate(raw[1:]):
        size += (byte & 0x7F) << ((i * 7) + 4)

    delta_base: int | bytes | None
    if type_num == OFS_DELTA:
        raw = take_msb_bytes(read_all)
        delta_base_offset = raw[0] & 0x7F
        for byte in raw[1:]:
            delta_base_offset += 1
            delta_base_offset <<= 7
            delta_base_offset += byte & 0x7F
        delta_base = delta_base_offset
    elif type_num == REF_DELTA:
        delta_base = read_all(20)
    elif object_class(type_num) is not None:
        delta_base = None
    else:
        raise ObjectFormatException(f"invalid pack entry type {type_num}")

    unpacked = UnpackedObject(type_num, delta_base=delta_base, decomp_len=size)
    unused = read_zlib_chunks(read_some, unpacked, buffer_size=zlib_bufsize)
    return unpacked, unused


def _load_file_contents(
    f: IO[bytes], size: int | None = None
) -> tuple["bytes | mmap.mmap", int]:
    """Map a file read-only, falling back to reading it for empty files."""
    fd = f.fileno()
    if size is None:
        size = os.fstat(fd).st_size
    try:
        contents = mmap.mmap(fd, size, access=mmap.ACCESS_READ)
    except ValueError:
        # Empty files can not be mapped
        contents_bytes = f.read()
        return contents_bytes, len(contents_bytes)
    return contents, size


def load_pack_index(path: str | os.PathLike[str]) -> "PackIndex2":
    """Load an index file by path.

    Args:
      path: Path to the index file
    Returns: A PackIndex2 loaded from the given path
    """
    f = open(path, "rb")
    try:
        return load_pack_index_file(path, f)
    except BaseException:
        f.close()
        raise


def load_pack_index_file(path: str | os.PathLike[str], f: IO[bytes]) -> "PackIndex2":
    """Load an index file from a file-like object.

    Only version 2 indexes are supported.

    Args:
      path: Path for the index file
      f: File-like object
    Returns: A PackIndex2 loaded from the given file
    Raises:
      UnsupportedIndex: for version 1 indexes or unknown versions
    """
    contents, size = _load_file_contents(f)
    if contents[:4] == INDEX_V2_MAGIC and size >= 8:
        (version,) = unpack_from(b">L", contents, 4)
    else:
        version = 1
    if version != 2:
        if isinstance(contents, mmap.mmap):
            contents.close()
        raise UnsupportedIndex(os.fspath(path), version)
    return PackIndex2(path, file=f, contents=contents, size=size)


def bisect_find_sha(
    start: int, end: int, sha: bytes, unpack_name: Callable[[int], bytes]
) -> int | None:
    """Find a SHA in a data blob with sorted SHAs.

    Args:
      start: Start index of range to search
      end: End index of range to search
      sha: Sha to find
      unpack_name: Callback to retrieve SHA by index
    Returns: Index of the SHA, or None if it wasn't found
    """
    assert start <= end
    while start <= end:
        i = (start + end) // 2
        file_sha = unpack_name(i)
        if file_sha < sha:
            start = i + 1
        elif file_sha > sha:
            end = i - 1
        else:
            return i
    return None


PackIndexEntry = tuple[RawObjectID, int, int]


class PackIndex2:
    """Version 2 Pack Index file.

    The first 256 4 byte groups after the header form the fan-out table,
    indexed by the first byte of the sha id. The value in each group is the
    number of objects whose first byte is less than or equal to the index,
    so the entries that share a first byte lie between two neighbouring
    values. The names are sorted by sha id within the table, so a bisection
    over that window finds the object if it is present.
    """

    hash_size = 20

    def __init__(
        self,
        filename: str | os.PathLike[str],
        file: IO[bytes] | None = None,
        contents: "bytes | mmap.mmap | None" = None,
        size: int | None = None,
    ) -> None:
        """Create a pack index object.

        Args:
          filename: Path to the index file
          file: Optional open file object
          contents: Optional mapped contents of the file
          size: Optional size of the contents
        """
        self._filename = filename
        if file is None:
            self._file = open(filename, "rb")
        else:
            self._file = file
        if contents is None:
            self._contents, self._size = _load_file_contents(self._file, size)
        else:
            self._contents = contents
            self._size = size if size is not None else len(contents)
        try:
            self._read_layout()
        except BaseException:
            self.close()
            raise

    def _read_layout(self) -> None:
        if self._contents[:4] != INDEX_V2_MAGIC:
            raise UnsupportedIndex(self.path, 1)
        (self.version,) = unpack_from(b">L", self._contents, 4)
        if self.version != 2:
            raise UnsupportedIndex(self.path, self.version)
        self._name_table_offset = 8 + 0x100 * 4
        if self._size < self._name_table_offset + 2 * self.hash_size:
            raise ObjectFormatException(f"{self.path}: pack index is truncated")
        self._fan_out_table = self._read_fan_out_table(8)
        count = len(self)
        self._crc32_table_offset = self._name_table_offset + self.hash_size * count
        self._pack_offset_table_offset = self._crc32_table_offset + 4 * count
        self._pack_offset_largetable_offset = self._pack_offset_table_offset + 4 * count
        if self._size < self._pack_offset_largetable_offset + 2 * self.hash_size:
            raise ObjectFormatException(
                f"{self.path}: pack index too short for {count} entries"
            )

    @property
    def path(self) -> str:
        """Return the path to this index file."""
        return os.fspath(self._filename)

    def close(self) -> None:
        """Close the underlying file and any mmap."""
        close_fn = getattr(self._contents, "close", None)
        if close_fn is not None:
            close_fn()
        self._file.close()

    def __len__(self) -> int:
        """Return the number of entries in this pack index."""
        return self._fan_out_table[-1]

    def __iter__(self) -> Iterator[ObjectID]:
        """Iterate over the hex SHAs in this index, in sorted order."""
        for i in range(len(self)):
            yield sha_to_hex(self._unpack_name(i))

    def __contains__(self, sha: object) -> bool:
        if not isinstance(sha, bytes):
            return False
        try:
            self.object_offset(sha)
        except KeyError:
            return False
        return True

    def _read_fan_out_table(self, start_offset: int) -> list[int]:
        ret = []
        for i in range(0x100):
            (entry,) = unpack_from(b">L", self._contents, start_offset + i * 4)
            ret.append(entry)
        return ret

    def _unpack_entry(self, i: int) -> PackIndexEntry:
        return (
            RawObjectID(self._unpack_name(i)),
            self._unpack_offset(i),
            self._unpack_crc32_checksum(i),
        )

    def _unpack_name(self, i: int) -> bytes:
        offset = self._name_table_offset + i * self.hash_size
        return self._contents[offset : offset + self.hash_size]

    def _unpack_offset(self, i: int) -> int:
        offset = self._pack_offset_table_offset + i * 4
        offset_val = int(unpack_from(b">L", self._contents, offset)[0])
        if offset_val & (2**31):
            offset = (
                self._pack_offset_largetable_offset + (offset_val & (2**31 - 1)) * 8
            )
            if offset + 8 > self._size - 2 * self.hash_size:
                raise ObjectFormatException(
                    f"{self.path}: large offset entry {offset_val & (2**31 - 1)} "
                    "is out of range"
                )
            offset_val = int(unpack_from(b">Q", self._contents, offset)[0])
        return offset_val

    def _unpack_crc32_checksum(self, i: int) -> int:
        return int(
            unpack_from(b">L", self._contents, self._crc32_table_offset + i * 4)[0]
        )

    def iterentries(self) -> Iterator[PackIndexEntry]:
        """Iterate over the entries in this pack index.

        Returns: iterator over tuples with object name, offset in packfile and
            crc32 checksum.
        """
        for i in range(len(self)):
            yield self._unpack_entry(i)

    def _find(self, sha: bytes) -> int:
        if len(sha) == 40:
            try:
                sha = hex_to_sha(sha)
            except ValueError as exc:
                raise KeyError(sha) from exc
        if len(sha) != self.hash_size:
            raise KeyError(sha)
        idx = sha[0]
        if idx == 0:
            start = 0
        else:
            start = self._fan_out_table[idx - 1]
        end = self._fan_out_table[idx] - 1
        if end < start:
            raise KeyError(sha)
        i = bisect_find_sha(start, end, sha, self._unpack_name)
        if i is None:
            raise KeyError(sha)
        return i

    def object_offset(self, sha: ObjectID | RawObjectID) -> int:
        """Return the offset in to the corresponding packfile for the object.

        Args:
          sha: A hex or binary object id
        Raises:
          KeyError: if the object is not in this index
        """
        return self._unpack_offset(self._find(sha))

    def object_crc32(self, sha: ObjectID | RawObjectID) -> int:
        """Return the CRC32 stored for the packed form of an object."""
        return self._unpack_crc32_checksum(self._find(sha))

    def check(self) -> None:
        """Check that the stored checksum matches the actual checksum."""
        actual = self.calculate_checksum()
        stored = self.get_stored_checksum()
        if actual != stored:
            raise ChecksumMismatch(stored, actual, extra=self.path)

    def calculate_checksum(self) -> bytes:
        """Calculate the SHA1 checksum over this pack index.

        Returns: This is a 20-byte binary digest
        """
        return sha1(self._contents[: -self.hash_size]).digest()

    def get_pack_checksum(self) -> bytes:
        """Return the SHA1 checksum stored for the corresponding packfile.

        Returns: 20-byte binary digest
        """
        return bytes(self._contents[-2 * self.hash_size : -self.hash_size])

    def get_stored_checksum(self) -> bytes:
        """Return the SHA1 checksum stored for this index.

        Returns: 20-byte binary digest
        """
        return bytes(self._contents[-self.hash_size :])


def read_pack_header(read: Callable[[int], bytes]) -> tuple[int, int]:
    """Read the header of a pack file.

    Args:
      read: Read function
    Returns: Tuple of (pack version, number of objects).
    Raises:
      ObjectFormatException: if the header is missing or malformed
    """
    header = read(PACK_HEADER_SIZE)
    if len(header) < PACK_HEADER_SIZE:
        raise ObjectFormatException("file too short to contain pack")
    if header[:4] != b"PACK":
        raise ObjectFormatException(f"Invalid pack header {header!r}")
    (version,) = unpack_from(b">L", header, 4)
    if version not in (2, 3):
        raise ObjectFormatException(f"Unsupported pack version {version}")
    (num_objects,) = unpack_from(b">L", header, 8)
    return (version, num_objects)


def _compute_object_size(value: tuple[int, bytes]) -> int:
    """Compute the size of a resolved object for use with LRUSizeCache."""
    return len(value[1])


class PackData:
    """The data contained in a packfile.

    The entries within are either complete objects or a delta against
    another entry.

    The entry header is variable length. If the MSB of each byte is set then
    it indicates that the subsequent byte is still part of the header.
    For the first byte the next MS bits are the type, which tells you the type
    of object, and whether it is a delta. The LS bits are the lowest bits of
    the size. For each subsequent byte the LS 7 bits are the next MS bits of
    the size, i.e. the last byte of the header contains the MS bits of the
    size.

    The size in the header is the uncompressed object size; the zlib stream
    that follows is inflated until it ends, and must produce exactly that
    many bytes.
    """

    def __init__(
        self,
        filename: str | os.PathLike[str],
        file: IO[bytes] | None = None,
        size: int | None = None,
        *,
        delta_cache_size: int | None = None,
    ) -> None:
        """Create a PackData object representing the pack in the given filename.

        The file must exist and stay the same size while it is open.

        Args:
          filename: Path to the pack file
          file: Optional open file object
          size: Optional size of the file
          delta_cache_size: Bytes of reconstructed delta bases to keep
        """
        self._filename = filename
        if file is None:
            self._file = open(filename, "rb")
        else:
            self._file = file
        try:
            self._contents, self._size = _load_file_contents(self._file, size)
            if self._size < PACK_HEADER_SIZE + 20:
                raise ObjectFormatException(
                    f"{self.path} is too small for a packfile ({self._size} bytes)"
                )
            (self.version, self._num_objects) = read_pack_header(
                _ContentsReader(self._contents, 0, self._size).read
            )
        except BaseException:
            self.close()
            raise
        self._offset_cache = LRUSizeCache[int, tuple[int, bytes]](
            delta_cache_size or DEFAULT_DELTA_CACHE_SIZE,
            compute_size=_compute_object_size,
        )

    @property
    def filename(self) -> str:
        """Base filename of the pack file."""
        return os.path.basename(os.fspath(self._filename))

    @property
    def path(self) -> str:
        """Full path of the pack file."""
        return os.fspath(self._filename)

    def close(self) -> None:
        """Close the underlying pack file and its mapping."""
        close_fn = getattr(getattr(self, "_contents", None), "close", None)
        if close_fn is not None:
            close_fn()
        self._file.close()

    def __enter__(self) -> "PackData":
        return self

    def __exit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def __len__(self) -> int:
        """Returns the number of objects in this pack."""
        return self._num_objects

    @property
    def data_end(self) -> int:
        """Offset of the trailing checksum, where entry data ends."""
        return self._size - 20

    def calculate_checksum(self) -> bytes:
        """Calculate the checksum for this pack.

        Returns: 20-byte binary SHA1 digest
        """
        return sha1(self._contents[: self.data_end]).digest()

    def get_stored_checksum(self) -> bytes:
        """Return the expected checksum stored in this pack."""
        return bytes(self._contents[self.data_end :])

    def check(self) -> None:
        """Check the consistency of this pack."""
        actual = self.calculate_checksum()
        stored = self.get_stored_checksum()
        if actual != stored:
            raise ChecksumMismatch(stored, actual, extra=self.path)

    def read_range(self, start: int, end: int) -> bytes:
        """Return the raw bytes between two offsets."""
        return self._contents[start:end]

    def get_unpacked_object_at(self, offset: int) -> UnpackedObject:
        """Given offset in the packfile return a UnpackedObject.

        Raises:
          ObjectFormatException: if the offset is outside the entry data or
            the entry is malformed or truncated
        """
        if not PACK_HEADER_SIZE <= offset < self.data_end:
            raise ObjectFormatException(
                f"{self.path}: offset {offset} is outside the pack data"
            )
        reader = _ContentsReader(self._contents, offset, self.data_end)
        unpacked, _ = unpack_object(reader.read, reader.read_some)
        unpacked.offset = offset
        return unpacked

    def get_object_at(self, offset: int) -> tuple[int, PackEntryPayload]:
        """Given an offset in to the packfile return the object that is there.

        Entries whose reconstruction has been cached are returned resolved.
        """
        cached = self._offset_cache.get(offset)
        if cached is not None:
            return cached
        unpacked = self.get_unpacked_object_at(offset)
        return (unpacked.pack_type_num, unpacked._obj())

    def cache_object_at(self, offset: int, type_num: int, data: bytes) -> None:
        """Remember the resolved contents of the entry at offset."""
        self._offset_cache[offset] = (type_num, data)


def _delta_header_size(delta: bytes, index: int) -> tuple[int, int]:
    size = 0
    shift = 0
    while True:
        if index >= len(delta):
            raise ApplyDeltaError("truncated delta header")
        cmd = delta[index]
        index += 1
        size |= (cmd & 0x7F) << shift
        shift += 7
        if not cmd & 0x80:
            return size, index


def apply_delta(src_buf: bytes | list[bytes], delta: bytes | list[bytes]) -> bytes:
    """Based on the similar function in git's patch-delta.c.

    Args:
      src_buf: Source buffer
      delta: Delta instructions
    Returns: the reconstructed target
    Raises:
      ApplyDeltaError: if the delta is malformed or does not fit the source
    """
    if not isinstance(src_buf, bytes):
        src_buf = b"".join(src_buf)
    if not isinstance(delta, bytes):
        delta = b"".join(delta)
    out: list[bytes] = []
    out_len = 0
    delta_length = len(delta)

    src_size, index = _delta_header_size(delta, 0)
    dest_size, index = _delta_header_size(delta, index)
    if src_size != len(src_buf):
        raise ApplyDeltaError(
            f"Unexpected source buffer size: {src_size} vs {len(src_buf)}"
        )
    while index < delta_length:
        cmd = delta[index]
        index += 1
        if cmd & 0x80:
            cp_off = 0
            for i in range(4):
                if cmd & (1 << i):
                    if index >= delta_length:
                        raise ApplyDeltaError("truncated copy instruction")
                    cp_off |= delta[index] << (i * 8)
                    index += 1
            cp_size = 0
            for i in range(3):
                if cmd & (1 << (4 + i)):
                    if index >= delta_length:
                        raise ApplyDeltaError("truncated copy instruction")
                    cp_size |= delta[index] << (i * 8)
                    index += 1
            if cp_size == 0:
                cp_size = 0x10000
            if cp_off + cp_size > src_size:
                raise ApplyDeltaError(
                    f"copy of {cp_size} bytes at {cp_off} exceeds source size "
                    f"{src_size}"
                )
            out.append(src_buf[cp_off : cp_off + cp_size])
            out_len += cp_size
        elif cmd != 0:
            if index + cmd > delta_length:
                raise ApplyDeltaError("truncated insert instruction")
            out.append(delta[index : index + cmd])
            out_len += cmd
            index += cmd
        else:
            raise ApplyDeltaError("Invalid opcode 0")
        if out_len > dest_size:
            raise ApplyDeltaError(
                f"delta output exceeds target size {dest_size}"
            )

    if out_len != dest_size:
        raise ApplyDeltaError(f"dest size incorrect: {out_len} vs {dest_size}")

    return b"".join(out)


class Pack:
    """A Git pack object: an index and the pack data it describes."""

    _data: PackData | None
    _idx: PackIndex2 | None

    def __init__(
        self,
        basename: str,
        *,
        resolve_ext_ref: ResolveExtRefFn | None = None,
        delta_cache_size: int | None = None,
    ) -> None:
        """Initialize a Pack object.

        Args:
          basename: Base path for pack files (without .pack/.idx extension)
          resolve_ext_ref: Optional function to look up ref-delta bases that
            are not in this pack; returns (type_num, raw contents)
          delta_cache_size: Bytes of reconstructed delta bases to keep
        """
        self._basename = basename
        self._data = None
        self._idx = None
        self._idx_path = self._basename + ".idx"
        self._data_path = self._basename + ".pack"
        self.delta_cache_size = delta_cache_size
        self.resolve_ext_ref = resolve_ext_ref

    @property
    def data(self) -> PackData:
        """The pack data object being used."""
        if self._data is None:
            self._data = PackData(
                self._data_path, delta_cache_size=self.delta_cache_size
            )
            logger.debug(
                "Opened pack %s with %d objects", self._data_path, len(self._data)
            )
            self.check_length_and_checksum()
        return self._data

    @property
    def index(self) -> PackIndex2:
        """The index being used."""
        if self._idx is None:
            self._idx = load_pack_index(self._idx_path)
        return self._idx

    def close(self) -> None:
        """Close the pack file and index."""
        if self._data is not None:
            self._data.close()
            self._data = None
        if self._idx is not None:
            self._idx.close()
            self._idx = None

    def __enter__(self) -> "Pack":
        return self

    def __exit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def __len__(self) -> int:
        """Number of entries in this pack."""
        return len(self.index)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self._basename!r})"

    def __iter__(self) -> Iterator[ObjectID]:
        """Iterate over all the sha1s of the objects in this pack."""
        return iter(self.index)

    def check_length_and_checksum(self) -> None:
        """Sanity check the length and checksum of the pack index and data."""
        if len(self.index) != len(self.data):
            raise ObjectFormatException(
                f"Length mismatch: {len(self.index)} (index) != "
                f"{len(self.data)} (data)"
            )
        idx_stored_checksum = self.index.get_pack_checksum()
        data_stored_checksum = self.data.get_stored_checksum()
        if idx_stored_checksum != data_stored_checksum:
            raise ChecksumMismatch(
                sha_to_hex(idx_stored_checksum),
                sha_to_hex(data_stored_checksum),
            )

    def check(self) -> None:
        """Check the integrity of this pack.

        Verifies both trailing checksums, the CRC32 of every entry and the id
        of every object.

        Raises:
          ChecksumMismatch: if a checksum for the index or data is wrong
          ObjectFormatException: if an object is malformed
        """
        self.index.check()
        self.data.check()
        entries = sorted(
            (offset, sha, crc32) for (sha, offset, crc32) in self.index.iterentries()
        )
        for i, (offset, sha, crc32) in enumerate(entries):
            if i + 1 < len(entries):
                end = entries[i + 1][0]
            else:
                end = self.data.data_end
            actual_crc32 = binascii.crc32(self.data.read_range(offset, end))
            if actual_crc32 != crc32:
                raise ChecksumMismatch(
                    f"{crc32:08x}",
                    f"{actual_crc32:08x}",
                    extra=f"CRC32 of {sha_to_hex(sha).decode('ascii')}",
                )
        for obj in self.iterobjects():
            obj.check()

    def get_stored_checksum(self) -> bytes:
        """Return the stored checksum of the pack data."""
        return self.data.get_stored_checksum()

    def __contains__(self, sha1: object) -> bool:
        """Check whether this pack contains a particular SHA1."""
        return sha1 in self.index

    def get_raw(self, sha1: ObjectID | RawObjectID) -> tuple[int, bytes]:
        """Get raw object data by SHA1.

        Raises:
          ObjectMissing: if the object is not in this pack
        """
        try:
            offset = self.index.object_offset(sha1)
        except KeyError as exc:
            if len(sha1) == 20:
                sha1 = sha_to_hex(sha1)
            raise ObjectMissing(sha1) from exc
        obj_type, obj = self.data.get_object_at(offset)
        return self.resolve_object(offset, obj_type, obj)

    def __getitem__(self, sha1: ObjectID | RawObjectID) -> ShaFile:
        """Retrieve the specified SHA1."""
        type_num, uncomp = self.get_raw(sha1)
        return ShaFile.from_raw_string(type_num, uncomp)

    def iterobjects(self) -> Iterator[ShaFile]:
        """Iterate over the objects in this pack, checking their ids."""
        for sha in self:
            type_num, uncomp = self.get_raw(sha)
            obj = ShaFile.from_raw_string(type_num, uncomp)
            if obj.id != sha:
                raise ChecksumMismatch(sha, obj.id)
            yield obj

    def iterentries(self) -> Iterator[tuple[ObjectID, int, int, int]]:
        """Iterate over (sha, type_num, size, offset) for every object."""
        for sha, offset, _crc32 in self.index.iterentries():
            hexsha = sha_to_hex(sha)
            type_num, uncomp = self.get_raw(hexsha)
            yield hexsha, type_num, len(uncomp), offset

    def get_ref(self, sha: bytes) -> tuple[int | None, int, PackEntryPayload]:
        """Get the object for a ref-delta base.

        Looks in this pack first, then through resolve_ext_ref.

        Returns: tuple of (offset or None if external, type_num, payload)
        Raises:
          ObjectMissing: if the base can not be found anywhere
        """
        try:
            offset = self.index.object_offset(sha)
        except KeyError:
            offset = None
        if offset is not None:
            type_num, obj = self.data.get_object_at(offset)
            return offset, type_num, obj
        hexsha = sha_to_hex(sha) if len(sha) == 20 else ObjectID(sha)
        if self.resolve_ext_ref is None:
            raise ObjectMissing(hexsha)
        type_num, data = self.resolve_ext_ref(hexsha)
        return None, type_num, data

    def resolve_object(
        self, offset: int, type_num: int, obj: PackEntryPayload
    ) -> tuple[int, bytes]:
        """Resolve an object, possibly resolving deltas when necessary.

        The chain is walked down to a full object without recursion, then the
        deltas are applied in reverse order. Each reconstructed object is
        cached by its offset.

        Returns: Tuple with object type and contents.
        """
        base_offset: int | None = offset
        base_type = type_num
        base_obj = obj
        delta_stack: list[tuple[int | None, bytes]] = []
        seen: set[int] = set()
        while base_type in DELTA_TYPES:
            prev_offset = base_offset
            assert prev_offset is not None
            if prev_offset in seen:
                raise ObjectFormatException(
                    f"delta chain at offset {offset} loops through {prev_offset}"
                )
            seen.add(prev_offset)
            if base_type == OFS_DELTA:
                (delta_distance, delta) = base_obj  # type: ignore[misc]
                base_offset = prev_offset - delta_distance
                if delta_distance <= 0 or base_offset < PACK_HEADER_SIZE:
                    raise ObjectFormatException(
                        f"ofs-delta at {prev_offset} has invalid base offset "
                        f"{base_offset}"
                    )
                base_type, base_obj = self.data.get_object_at(base_offset)
            else:
                (basename, delta) = base_obj  # type: ignore[misc]
                base_offset, base_type, base_obj = self.get_ref(basename)
            delta_stack.append((prev_offset, delta))

        chunks: bytes = base_obj  # type: ignore[assignment]
        if delta_stack:
            logger.debug(
                "Resolving delta chain of depth %d at offset %d",
                len(delta_stack),
                offset,
            )
            if base_offset is not None:
                self.data.cache_object_at(base_offset, base_type, chunks)
        for prev_offset, delta in reversed(delta_stack):
            chunks = apply_delta(chunks, delta)
            if prev_offset is not None:
                self.data.cache_object_at(prev_offset, base_type, chunks)
        return base_type, chunks
