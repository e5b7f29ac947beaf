# utils.py -- Test utilities for gitreader.
# Copyright (C) 2010 Google, Inc.
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

"""Utility functions common to gitreader tests.

gitreader itself never writes to a repository, so the writers needed to
build fixtures (loose objects, packs, pack indexes and deltas) live here.
"""

import binascii
import os
import stat
import struct
import zlib
from collections import defaultdict
from collections.abc import Callable, Iterable, Iterator, Sequence
from difflib import SequenceMatcher
from hashlib import sha1
from typing import IO, Any

from gitreader.objects import (
    ObjectID,
    hex_to_filename,
    hex_to_sha,
    object_header,
    sha_to_hex,
)
from gitreader.pack import DELTA_TYPES, OFS_DELTA, REF_DELTA

BLOB = 3
TREE = 2
COMMIT = 1
TAG = 4

AUTHOR = b"A U Thor <author@example.com>"

PROCFILE = b"web: puma\nworker: sidekiq\n"
PROCFILE_ID = b"467c21715563cbf5bf52ae79616e02914b89e9f1"
CONFIG_RB = b"hello\n"
CONFIG_RB_ID = b"ce013625030ba8dba906f756967f9e9ca394464a"


def obj_sha(type_num: int, data: bytes) -> bytes:
    """Compute the binary id of an object from its type and payload."""
    return sha1(object_header(type_num, len(data)) + data).digest()


def obj_hexsha(type_num: int, data: bytes) -> ObjectID:
    """Compute the hex id of an object from its type and payload."""
    return sha_to_hex(obj_sha(type_num, data))


def write_loose_object(objects_dir: str, type_num: int, data: bytes) -> ObjectID:
    """Store an object as a zlib-compressed loose file.

    Returns: the hex id of the object
    """
    hexsha = obj_hexsha(type_num, data)
    path = hex_to_filename(objects_dir, hexsha)
    assert isinstance(path, str)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "wb") as f:
        f.write(zlib.compress(object_header(type_num, len(data)) + data))
    return hexsha


def make_tree_text(entries: Iterable[tuple[bytes, int, bytes]]) -> bytes:
    """Serialize (name, mode, hexsha) entries as a tree payload, in git order."""

    def key(entry: tuple[bytes, int, bytes]) -> bytes:
        name, mode, _ = entry
        return name + b"/" if stat.S_ISDIR(mode) else name

    return b"".join(
        b"%o " % mode + name + b"\0" + hex_to_sha(hexsha)
        for name, mode, hexsha in sorted(entries, key=key)
    )


def make_commit_text(
    tree: bytes,
    parents: Sequence[bytes] = (),
    message: bytes = b"Commit\n",
    commit_time: int = 1700000000,
    extra: Sequence[tuple[bytes, bytes]] = (),
) -> bytes:
    """Serialize a commit payload with fixed author and committer."""
    lines = [b"tree " + tree]
    lines.extend(b"parent " + parent for parent in parents)
    identity = AUTHOR + b" %d +0000" % commit_time
    lines.append(b"author " + identity)
    lines.append(b"committer " + identity)
    lines.extend(field + b" " + value.replace(b"\n", b"\n ") for field, value in extra)
    return b"\n".join(lines) + b"\n\n" + message


def make_tag_text(
    object_id: bytes, object_type: bytes, name: bytes, message: bytes = b"Tag\n"
) -> bytes:
    """Serialize an annotated tag payload."""
    return (
        b"object " + object_id + b"\n"
        b"type " + object_type + b"\n"
        b"tag " + name + b"\n"
        b"tagger " + AUTHOR + b" 1700000000 +0000\n"
        b"\n" + message
    )


class SHA1Writer:
    """Wrapper for file-like object that remembers the SHA1 of its data."""

    def __init__(self, f: IO[bytes]) -> None:
        self.f = f
        self.sha1 = sha1(b"")

    def write(self, data: bytes) -> None:
        self.sha1.update(data)
        self.f.write(data)

    def write_sha(self) -> bytes:
        sha = self.sha1.digest()
        assert len(sha) == 20
        self.f.write(sha)
        return sha

    def tell(self) -> int:
        return self.f.tell()


def pack_object_header(
    type_num: int, delta_base: bytes | int | None, size: int
) -> bytes:
    """Create a pack object header for the given object info."""
    header = []
    c = (type_num << 4) | (size & 15)
    size >>= 4
    while size:
        header.append(c | 0x80)
        c = size & 0x7F
        size >>= 7
    header.append(c)
    if type_num == OFS_DELTA:
        assert isinstance(delta_base, int)
        ret = [delta_base & 0x7F]
        delta_base >>= 7
        while delta_base:
            delta_base -= 1
            ret.insert(0, 0x80 | (delta_base & 0x7F))
            delta_base >>= 7
        header.extend(ret)
    elif type_num == REF_DELTA:
        assert isinstance(delta_base, bytes) and len(delta_base) == 20
        header += delta_base
    return bytes(header)


def write_pack_object(
    write: Callable[[bytes], Any], type_num: int, obj: bytes | tuple[Any, bytes]
) -> int:
    """Write a pack entry.

    Args:
      write: Write function to use
      type_num: Numeric pack type of the entry
      obj: Payload; for delta types a tuple of (delta base, delta)
    Returns: CRC32 checksum of the written entry
    """
    if type_num in DELTA_TYPES:
        assert isinstance(obj, tuple)
        delta_base, data = obj
    else:
        assert isinstance(obj, bytes)
        delta_base, data = None, obj
    entry = pack_object_header(type_num, delta_base, len(data)) + zlib.compress(data)
    write(entry)
    return binascii.crc32(entry) & 0xFFFFFFFF


def write_pack_header(write: Callable[[bytes], Any], num_objects: int) -> None:
    """Write a pack header for the given number of objects."""
    write(b"PACK")
    write(struct.pack(b">L", 2))
    write(struct.pack(b">L", num_objects))


def _delta_encode_size(size: int) -> bytes:
    ret = bytearray()
    c = size & 0x7F
    size >>= 7
    while size:
        ret.append(c | 0x80)
        c = size & 0x7F
        size >>= 7
    ret.append(c)
    return bytes(ret)


# Copy operations in version 2 packs are limited to 64K
_MAX_COPY_LEN = 0xFFFF


def _encode_copy_operation(start: int, length: int) -> bytes:
    scratch = bytearray([0x80])
    for i in range(4):
        if start & 0xFF << i * 8:
            scratch.append((start >> i * 8) & 0xFF)
            scratch[0] |= 1 << i
    for i in range(2):
        if length & 0xFF << i * 8:
            scratch.append((length >> i * 8) & 0xFF)
            scratch[0] |= 1 << (4 + i)
    return bytes(scratch)


def _create_delta_chunks(base_buf: bytes, target_buf: bytes) -> Iterator[bytes]:
    yield _delta_encode_size(len(base_buf))
    yield _delta_encode_size(len(target_buf))
    seq = SequenceMatcher(isjunk=None, a=base_buf, b=target_buf)
    for opcode, i1, i2, j1, j2 in seq.get_opcodes():
        if opcode == "equal":
            copy_start = i1
            copy_len = i2 - i1
            while copy_len > 0:
                to_copy = min(copy_len, _MAX_COPY_LEN)
                yield _encode_copy_operation(copy_start, to_copy)
                copy_start += to_copy
                copy_len -= to_copy
        if opcode == "replace" or opcode == "insert":
            s = j2 - j1
            o = j1
            while s > 127:
                yield bytes([127])
                yield target_buf[o : o + 127]
                s -= 127
                o += 127
            yield bytes([s])
            yield target_buf[o : o + s]


def create_delta(base_buf: bytes, target_buf: bytes) -> bytes:
    """Compute a delta that turns base_buf into target_buf."""
    return b"".join(_create_delta_chunks(base_buf, target_buf))


def write_pack_index_v2(
    f: IO[bytes],
    entries: Iterable[tuple[bytes, int, int]],
    pack_checksum: bytes,
) -> bytes:
    """Write a new pack index file.

    Args:
      f: File-like object to write to
      entries: List of tuples with binary object name, offset in the pack
        and crc32 checksum, sorted by name
      pack_checksum: Checksum of the pack file.
    Returns: The checksum of the index file written
    """
    f_writer = SHA1Writer(f)
    f_writer.write(b"\377tOc")
    f_writer.write(struct.pack(">L", 2))
    entries_list = list(entries)
    fan_out_table: dict[int, int] = defaultdict(lambda: 0)
    for name, _offset, _crc32 in entries_list:
        fan_out_table[name[0]] += 1
    largetable: list[int] = []
    for i in range(0x100):
        f_writer.write(struct.pack(b">L", fan_out_table[i]))
        fan_out_table[i + 1] += fan_out_table[i]
    for name, _offset, _crc32 in entries_list:
        f_writer.write(name)
    for _name, _offset, crc32 in entries_list:
        f_writer.write(struct.pack(b">L", crc32))
    for _name, offset, _crc32 in entries_list:
        if offset < 2**31:
            f_writer.write(struct.pack(b">L", offset))
        else:
            f_writer.write(struct.pack(b">L", 2**31 + len(largetable)))
            largetable.append(offset)
    for offset in largetable:
        f_writer.write(struct.pack(b">Q", offset))
    f_writer.write(pack_checksum)
    return f_writer.write_sha()


PackSpec = Sequence[tuple[int, Any]]


def build_pack(
    f: IO[bytes],
    objects_spec: PackSpec,
    get_raw: Callable[[bytes], tuple[int, bytes]] | None = None,
) -> list[tuple[int, int, bytes, bytes, int]]:
    """Write test pack data from a concise spec.

    Args:
      f: A file-like object to write the pack to.
      objects_spec: A list of (type_num, obj). For non-delta types, obj
        is the payload of the object. For delta types, obj is a tuple of
        (base, data), where base is either an index in objects_spec of the
        base for that delta, or for a ref delta a hex sha of an object
        outside the pack (looked up through get_raw), and data is the full,
        non-deltified payload.
      get_raw: Function returning (type_num, payload) for external bases
    Returns: A list of tuples in the order specified by objects_spec:
        (offset, type num, data, sha, CRC32)
    """
    sf = SHA1Writer(f)
    num_objects = len(objects_spec)
    write_pack_header(sf.write, num_objects)

    full_objects: dict[int, tuple[int, bytes, bytes]] = {}
    offsets: dict[int, int] = {}
    crc32s: dict[int, int] = {}

    while len(full_objects) < num_objects:
        for i, (type_num, data) in enumerate(objects_spec):
            if type_num not in DELTA_TYPES:
                full_objects[i] = (type_num, data, obj_sha(type_num, data))
                continue
            base, data = data
            if isinstance(base, int):
                if base not in full_objects:
                    continue
                base_type_num, _, _ = full_objects[base]
            else:
                assert get_raw is not None
                base_type_num, _ = get_raw(base)
            full_objects[i] = (base_type_num, data, obj_sha(base_type_num, data))

    for i, (type_num, obj) in enumerate(objects_spec):
        offset = f.tell()
        if type_num == OFS_DELTA:
            base_index, data = obj
            distance = offset - offsets[base_index]
            _, base_data, _ = full_objects[base_index]
            obj = (distance, create_delta(base_data, data))
        elif type_num == REF_DELTA:
            base_ref, data = obj
            if isinstance(base_ref, int):
                _, base_data, base = full_objects[base_ref]
            else:
                assert get_raw is not None
                base_type_num, base_data = get_raw(base_ref)
                base = obj_sha(base_type_num, base_data)
            obj = (base, create_delta(base_data, data))

        crc32s[i] = write_pack_object(sf.write, type_num, obj)
        offsets[i] = offset

    expected = []
    for i in range(num_objects):
        type_num, data, sha = full_objects[i]
        expected.append((offsets[i], type_num, data, sha, crc32s[i]))

    sf.write_sha()
    f.seek(0)
    return expected


def write_pack(
    basename: str,
    objects_spec: PackSpec,
    get_raw: Callable[[bytes], tuple[int, bytes]] | None = None,
) -> list[tuple[int, int, bytes, bytes, int]]:
    """Write basename.pack and a matching basename.idx.

    Returns: the entries as returned by build_pack
    """
    with open(basename + ".pack", "w+b") as f:
        expected = build_pack(f, objects_spec, get_raw)
        f.seek(-20, os.SEEK_END)
        pack_checksum = f.read(20)
    entries = sorted((sha, offset, crc32) for offset, _, _, sha, crc32 in expected)
    with open(basename + ".idx", "wb") as f:
        write_pack_index_v2(f, entries, pack_checksum)
    return expected


def write_raw_pack(basename: str, raw_entries: Sequence[tuple[bytes, bytes]]) -> None:
    """Write a pack from pre-encoded entries, with valid checksums.

    Args:
      basename: Path of the pack without extension
      raw_entries: (binary sha, encoded entry) tuples, in pack order
    """
    body = b"PACK" + struct.pack(b">LL", 2, len(raw_entries))
    index_entries = []
    for sha, entry in raw_entries:
        index_entries.append((sha, len(body), binascii.crc32(entry) & 0xFFFFFFFF))
        body += entry
    pack_checksum = sha1(body).digest()
    with open(basename + ".pack", "wb") as f:
        f.write(body + pack_checksum)
    with open(basename + ".idx", "wb") as f:
        write_pack_index_v2(f, sorted(index_entries), pack_checksum)


def write_file(path: str, contents: bytes) -> None:
    """Write contents to path, creating parent directories."""
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "wb") as f:
        f.write(contents)


class ProjFixture:
    """A small project repository with a branch, a tag and a packed subtree.

    The non-bare layout keeps the Procfile blob and both commits loose, and
    the trees, the tag and app/config.rb in a pack, with the second root tree
    stored as an ofs-delta against the first. The bare clone has every object
    in a single pack and no HEAD or refs.
    """

    def __init__(self, root: str) -> None:
        self.root = root
        self.procfile = obj_hexsha(BLOB, PROCFILE)
        self.config_rb = obj_hexsha(BLOB, CONFIG_RB)
        self.tree1_text = make_tree_text([(b"Procfile", 0o100644, self.procfile)])
        self.tree1 = obj_hexsha(TREE, self.tree1_text)
        self.app_tree_text = make_tree_text([(b"config.rb", 0o100644, self.config_rb)])
        self.app_tree = obj_hexsha(TREE, self.app_tree_text)
        self.tree2_text = make_tree_text(
            [(b"Procfile", 0o100644, self.procfile), (b"app", 0o040000, self.app_tree)]
        )
        self.tree2 = obj_hexsha(TREE, self.tree2_text)
        self.commit1_text = make_commit_text(self.tree1, message=b"Add Procfile\n")
        self.commit1 = obj_hexsha(COMMIT, self.commit1_text)
        self.commit2_text = make_commit_text(
            self.tree2,
            parents=[self.commit1],
            message=b"Add app config\n",
            commit_time=1700000100,
        )
        self.commit2 = obj_hexsha(COMMIT, self.commit2_text)
        self.tag_text = make_tag_text(self.commit1, b"commit", b"before")
        self.tag = obj_hexsha(TAG, self.tag_text)

        self.path = os.path.join(root, "proj")
        self.controldir = os.path.join(self.path, ".git")
        self.objects_dir = os.path.join(self.controldir, "objects")
        self.bare_path = os.path.join(root, "proj.git")
        self._build_worktree()
        self._build_bare()

    def _build_worktree(self) -> None:
        os.makedirs(os.path.join(self.objects_dir, "pack"))
        write_loose_object(self.objects_dir, BLOB, PROCFILE)
        write_loose_object(self.objects_dir, COMMIT, self.commit1_text)
        write_loose_object(self.objects_dir, COMMIT, self.commit2_text)
        write_pack(
            os.path.join(self.objects_dir, "pack", "pack-proj"),
            [
                (TREE, self.tree1_text),
                (BLOB, CONFIG_RB),
                (TREE, self.app_tree_text),
                (OFS_DELTA, (0, self.tree2_text)),
                (TAG, self.tag_text),
            ],
        )
        write_file(os.path.join(self.controldir, "HEAD"), b"ref: refs/heads/master\n")
        write_file(
            os.path.join(self.controldir, "refs", "heads", "master"),
            self.commit2 + b"\n",
        )
        write_file(
            os.path.join(self.controldir, "refs", "tags", "before"), self.tag + b"\n"
        )
        write_file(os.path.join(self.path, "Procfile"), PROCFILE)

    def _build_bare(self) -> None:
        pack_dir = os.path.join(self.bare_path, "objects", "pack")
        os.makedirs(pack_dir)
        write_pack(
            os.path.join(pack_dir, "pack-bare"),
            [
                (COMMIT, self.commit2_text),
                (COMMIT, self.commit1_text),
                (TREE, self.tree2_text),
                (REF_DELTA, (2, self.tree1_text)),
                (TREE, self.app_tree_text),
                (BLOB, PROCFILE),
                (BLOB, CONFIG_RB),
                (TAG, self.tag_text),
            ],
        )


def build_proj(root: str) -> ProjFixture:
    """Create the project fixture repositories below root."""
    return ProjFixture(root)
