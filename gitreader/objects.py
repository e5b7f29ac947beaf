# objects.py -- Access to base git objects
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

"""Access to base git objects.

Objects are decoded lazily: constructing one only stores the raw payload,
and the payload is parsed the first time one of its attributes is read.
"""

__all__ = [
    "S_IFGITLINK",
    "Blob",
    "Commit",
    "ObjectID",
    "RawObjectID",
    "ShaFile",
    "Tag",
    "Tree",
    "TreeEntry",
    "hex_to_filename",
    "hex_to_sha",
    "object_class",
    "object_header",
    "parse_object_header",
    "parse_time_entry",
    "parse_timezone",
    "parse_tree",
    "parse_tree_path",
    "sha_to_hex",
    "valid_hexsha",
]

import binascii
import hashlib
import os
import stat
from collections.abc import Callable, Iterator
from io import BytesIO
from typing import BinaryIO, NamedTuple, NewType

from .errors import (
    NotBlobError,
    NotCommitError,
    NotTagError,
    NotTreeError,
    ObjectFormatException,
    PathMissing,
)

ObjectID = NewType("ObjectID", bytes)
RawObjectID = NewType("RawObjectID", bytes)

# Header fields for commits
_TREE_HEADER = b"tree"
_PARENT_HEADER = b"parent"
_AUTHOR_HEADER = b"author"
_COMMITTER_HEADER = b"committer"
_ENCODING_HEADER = b"encoding"
_GPGSIG_HEADER = b"gpgsig"

# Header fields for tags
_OBJECT_HEADER = b"object"
_TYPE_HEADER = b"type"
_TAG_HEADER = b"tag"
_TAGGER_HEADER = b"tagger"

S_IFGITLINK = 0o160000

_OCTAL_DIGITS = frozenset(b"01234567")
_HEX_DIGITS = frozenset(b"0123456789abcdefABCDEF")


def S_ISGITLINK(m: int) -> bool:
    """Check if a mode indicates a submodule.

    Args:
      m: Mode to check
    Returns: a ``boolean``
    """
    return stat.S_IFMT(m) == S_IFGITLINK


def sha_to_hex(sha: bytes) -> ObjectID:
    """Takes a binary sha and returns its lowercase hex form."""
    hexsha = binascii.hexlify(sha)
    if len(hexsha) != 40:
        raise ValueError(f"Incorrect length of sha string: {hexsha!r}")
    return ObjectID(hexsha)


def hex_to_sha(hex: bytes | str) -> RawObjectID:
    """Takes a hex sha and returns a binary sha."""
    if len(hex) != 40:
        raise ValueError(f"Incorrect length of hexsha: {hex!r}")
    try:
        return RawObjectID(binascii.unhexlify(hex))
    except (TypeError, binascii.Error) as exc:
        if not isinstance(hex, bytes):
            raise
        raise ValueError(exc.args[0]) from exc


def valid_hexsha(hex: bytes | str) -> bool:
    """Check whether a value is a 40 character hex object id."""
    if isinstance(hex, str):
        try:
            hex = hex.encode("ascii")
        except UnicodeEncodeError:
            return False
    return len(hex) == 40 and all(c in _HEX_DIGITS for c in hex)


def hex_to_filename(path: str | bytes, hex: str | bytes) -> str | bytes:
    """Takes a hex sha and returns its filename relative to the given path."""
    # os.path.join accepts bytes or unicode, but all args must be of the same
    # type. Make sure that hex which is expected to be bytes, is the same type
    # as path.
    if isinstance(path, str) and isinstance(hex, bytes):
        hex = hex.decode("ascii")
    elif isinstance(path, bytes) and isinstance(hex, str):
        hex = hex.encode("ascii")
    dir_name = hex[:2]
    file_name = hex[2:]
    return os.path.join(path, dir_name, file_name)  # type: ignore[arg-type]


def object_class(type: bytes | int) -> "type[ShaFile] | None":
    """Get the object class corresponding to the given type.

    Args:
      type: Either a type name string or a numeric type.
    Returns: The ShaFile subclass corresponding to the given type, or None if
      type is not a valid type name/number.
    """
    return _TYPE_MAP.get(type, None)


def object_header(num_type: int, length: int) -> bytes:
    """Return an object header for the given numeric type and text length."""
    cls = object_class(num_type)
    if cls is None:
        raise AssertionError(f"unsupported class type num: {num_type}")
    return cls.type_name + b" " + str(length).encode("ascii") + b"\0"


def parse_object_header(data: bytes) -> tuple[int, bytes]:
    """Split a full object text into its type number and payload.

    Args:
      data: ``<type> SP <decimal length> NUL <payload>``
    Returns: Tuple with numeric type and payload
    Raises:
      ObjectFormatException: if the header is malformed, names an unknown
        type, or the payload length differs from the declared length
    """
    nul = data.find(b"\0")
    if nul == -1:
        raise ObjectFormatException("object header is not NUL terminated")
    try:
        type_name, size_text = data[:nul].split(b" ", 1)
    except ValueError as exc:
        raise ObjectFormatException(f"malformed object header {data[:nul]!r}") from exc
    if not size_text.isdigit():
        raise ObjectFormatException(f"invalid object length {size_text!r}")
    obj_class = object_class(type_name)
    if obj_class is None:
        raise ObjectFormatException(f"unknown object type {type_name!r}")
    payload = data[nul + 1 :]
    if len(payload) != int(size_text):
        raise ObjectFormatException(
            f"object length {len(payload)} does not match declared length "
            f"{int(size_text)}"
        )
    return obj_class.type_num, payload


def _lazy_property(name: str, docstring: str | None = None) -> property:
    """A read-only property that is decoded on first access."""

    def get(obj: "ShaFile") -> object:
        obj._ensure_parsed()
        return getattr(obj, "_" + name)

    return property(get, doc=docstring)


class ShaFile:
    """A git SHA file."""

    __slots__ = ("_chunked_text", "_needs_parsing", "_sha")

    type_name: bytes
    type_num: int

    def __init__(self) -> None:
        """Initialize an empty ShaFile."""
        self._chunked_text: list[bytes] = []
        self._needs_parsing = False
        self._sha: ObjectID | None = None

    @classmethod
    def from_raw_chunks(
        cls, type_num: int, chunks: list[bytes], sha: ObjectID | None = None
    ) -> "ShaFile":
        """Creates an object of the indicated type from the raw chunks given.

        Args:
          type_num: The numeric type of the object.
          chunks: An iterable of the raw uncompressed contents.
          sha: Optional known sha for the object
        """
        obj_class = object_class(type_num)
        if obj_class is None:
            raise ObjectFormatException(f"unsupported class type num: {type_num}")
        obj = obj_class()
        obj._chunked_text = list(chunks)
        obj._needs_parsing = True
        obj._sha = sha
        return obj

    @classmethod
    def from_raw_string(
        cls, type_num: int, string: bytes, sha: ObjectID | None = None
    ) -> "ShaFile":
        """Creates an object of the indicated type from the raw string given.

        Args:
          type_num: The numeric type of the object.
          string: The raw uncompressed contents.
          sha: Optional known sha for the object
        """
        return cls.from_raw_chunks(type_num, [string], sha)

    @classmethod
    def from_object_bytes(cls, data: bytes) -> "ShaFile":
        """Create an object from its full ``<type> <len>\\0<payload>`` text."""
        type_num, payload = parse_object_header(data)
        return cls.from_raw_string(type_num, payload)

    def _ensure_parsed(self) -> None:
        if self._needs_parsing:
            self._deserialize(self._chunked_text)
            self._needs_parsing = False

    def _deserialize(self, chunks: list[bytes]) -> None:
        raise NotImplementedError(self._deserialize)

    def _check(self) -> None:
        pass

    def check(self) -> None:
        """Check this object for internal consistency.

        Raises:
          ObjectFormatException: if the object is malformed in some way
        """
        try:
            self._deserialize(self._chunked_text)
        except (ValueError, IndexError) as exc:
            raise ObjectFormatException(exc) from exc
        self._needs_parsing = False
        self._check()

    def as_raw_chunks(self) -> list[bytes]:
        """Return chunks with the payload of the object."""
        return self._chunked_text

    def as_raw_string(self) -> bytes:
        """Return the payload of the object as a bytestring."""
        return b"".join(self.as_raw_chunks())

    def as_pretty_string(self) -> bytes:
        """Return a human-readable rendering of the object."""
        return self.as_raw_string()

    def raw_length(self) -> int:
        """Returns the length of the raw string of this object."""
        return sum(map(len, self.as_raw_chunks()))

    def _header(self) -> bytes:
        return object_header(self.type_num, self.raw_length())

    def sha(self) -> "hashlib._Hash":
        """The SHA1 object that is the name of this object."""
        obj = hashlib.sha1(self._header())
        for chunk in self.as_raw_chunks():
            obj.update(chunk)
        return obj

    @property
    def id(self) -> ObjectID:
        """The hex SHA of this object."""
        if self._sha is None:
            self._sha = ObjectID(self.sha().hexdigest().encode("ascii"))
        return self._sha

    def as_commit(self) -> "Commit":
        """Return this object as a commit.

        Raises:
          NotCommitError: if this is not a commit
        """
        if not isinstance(self, Commit):
            raise NotCommitError(self.id)
        return self

    def as_tree(self) -> "Tree":
        """Return this object as a tree.

        Raises:
          NotTreeError: if this is not a tree
        """
        if not isinstance(self, Tree):
            raise NotTreeError(self.id)
        return self

    def as_blob(self) -> "Blob":
        """Return this object as a blob.

        Raises:
          NotBlobError: if this is not a blob
        """
        if not isinstance(self, Blob):
            raise NotBlobError(self.id)
        return self

    def as_tag(self) -> "Tag":
        """Return this object as a tag.

        Raises:
          NotTagError: if this is not a tag
        """
        if not isinstance(self, Tag):
            raise NotTagError(self.id)
        return self

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.id!r}>"

    def __eq__(self, other: object) -> bool:
        """Return True if the SHAs of the two objects match."""
        return isinstance(other, ShaFile) and self.id == other.id

    def __ne__(self, other: object) -> bool:
        return not self.__eq__(other)

    def __hash__(self) -> int:
        return hash(self.id)


class Blob(ShaFile):
    """A Git Blob object."""

    __slots__ = ()

    type_name = b"blob"
    type_num = 3

    def _deserialize(self, chunks: list[bytes]) -> None:
        pass

    @property
    def data(self) -> bytes:
        """The text contained within the blob object."""
        return self.as_raw_string()

    @property
    def chunked(self) -> list[bytes]:
        """The text in the blob object, as chunks (not necessarily lines)."""
        return self._chunked_text

    def open(self) -> BinaryIO:
        """Return a binary stream over the blob contents."""
        return BytesIO(self.as_raw_string())

    def splitlines(self) -> list[bytes]:
        """Return list of lines in this blob, keeping line endings."""
        return self.as_raw_string().splitlines(True)


def _parse_message(
    chunks: list[bytes],
) -> Iterator[tuple[bytes, bytes] | tuple[None, bytes]]:
    """Parse the headers and body of a commit or tag.

    Continuation lines (starting with a single space) are folded into the
    preceding header value, separated by newlines.

    Args:
      chunks: Raw payload chunks
    Returns: iterator of (field, value) pairs, followed by a single
      (None, message) pair
    """
    f = BytesIO(b"".join(chunks))
    field: bytes | None = None
    value_lines: list[bytes] = []

    for line in f:
        if line.startswith(b" "):
            if field is None:
                raise ObjectFormatException("continuation line before any header")
            value_lines.append(line[1:].rstrip(b"\n"))
            continue
        if field is not None:
            yield (field, b"\n".join(value_lines))
            field = None
        if line == b"\n":
            break
        try:
            field, first = line.rstrip(b"\n").split(b" ", 1)
        except ValueError as exc:
            raise ObjectFormatException(f"malformed header line {line!r}") from exc
        value_lines = [first]
    else:
        if field is not None:
            yield (field, b"\n".join(value_lines))
    yield (None, f.read())


def parse_timezone(text: bytes) -> int:
    """Parse a timezone text fragment (e.g. '+0100').

    Args:
      text: Text to parse.
    Returns: Offset from UTC in seconds
    Raises:
      ValueError: if the text is not a signed four digit offset
    """
    if len(text) != 5 or text[:1] not in (b"+", b"-") or not text[1:].isdigit():
        raise ValueError(f"invalid timezone {text!r}")
    sign = -1 if text[:1] == b"-" else 1
    hours = int(text[1:3])
    minutes = int(text[3:5])
    return sign * (hours * 3600 + minutes * 60)


def parse_time_entry(value: bytes) -> tuple[bytes, int, int]:
    """Parse an identity line with a time, as found in commits and tags.

    Args:
      value: ``Name <email> <seconds> <+hhmm>``
    Returns: Tuple of (person, time, timezone)
    Raises:
      ObjectFormatException: if the entry is malformed
    """
    sep = value.rfind(b"> ")
    if sep == -1:
        raise ObjectFormatException(f"missing time in identity {value!r}")
    person = value[: sep + 1]
    try:
        timetext, timezonetext = value[sep + 2 :].rsplit(b" ", 1)
        time = int(timetext)
        timezone = parse_timezone(timezonetext)
    except ValueError as exc:
        raise ObjectFormatException(exc) from exc
    return person, time, timezone


class Tag(ShaFile):
    """A Git Tag object."""

    __slots__ = (
        "_extra",
        "_message",
        "_name",
        "_object_class",
        "_object_sha",
        "_tag_time",
        "_tag_timezone",
        "_tagger",
    )

    type_name = b"tag"
    type_num = 4

    def _deserialize(self, chunks: list[bytes]) -> None:
        self._object_sha: ObjectID | None = None
        self._object_class: type[ShaFile] | None = None
        self._name: bytes | None = None
        self._tagger: bytes | None = None
        self._tag_time: int | None = None
        self._tag_timezone: int | None = None
        self._extra: list[tuple[bytes, bytes]] = []
        self._message = b""
        for field, value in _parse_message(chunks):
            if field == _OBJECT_HEADER:
                self._object_sha = ObjectID(value)
            elif field == _TYPE_HEADER:
                obj_class = object_class(value)
                if obj_class is None:
                    raise ObjectFormatException(f"Not a known type: {value!r}")
                self._object_class = obj_class
            elif field == _TAG_HEADER:
                self._name = value
            elif field == _TAGGER_HEADER:
                (self._tagger, self._tag_time, self._tag_timezone) = (
                    parse_time_entry(value)
                )
            elif field is None:
                self._message = value
            else:
                self._extra.append((field, value))

    def _check(self) -> None:
        if self._object_sha is None or not valid_hexsha(self._object_sha):
            raise ObjectFormatException("tag has no valid object id")
        if self._object_class is None:
            raise ObjectFormatException("tag has no object type")
        if not self._name:
            raise ObjectFormatException("tag has no name")

    @property
    def object(self) -> tuple["type[ShaFile] | None", ObjectID | None]:
        """Get the object pointed to by this tag.

        Returns: tuple of (object class, sha).
        """
        self._ensure_parsed()
        return (self._object_class, self._object_sha)

    @property
    def tag_type(self) -> bytes | None:
        """Type name of the tagged object."""
        self._ensure_parsed()
        if self._object_class is None:
            return None
        return self._object_class.type_name

    name = _lazy_property("name", "The name of this tag")
    tagger = _lazy_property("tagger", "The person who created this tag")
    tag_time = _lazy_property(
        "tag_time", "The creation timestamp of the tag in seconds since the epoch"
    )
    tag_timezone = _lazy_property("tag_timezone", "The timezone of tag_time")
    message = _lazy_property("message", "The message attached to this tag")
    extra = _lazy_property("extra", "Unknown headers, in order of appearance")


class TreeEntry(NamedTuple):
    """Named tuple encapsulating a single tree entry."""

    path: bytes
    mode: int
    sha: ObjectID


def parse_tree(text: bytes) -> Iterator[tuple[bytes, int, ObjectID]]:
    """Parse a tree text.

    Args:
      text: Serialized text to parse
    Returns: iterator of tuples of (name, mode, sha)
    Raises:
      ObjectFormatException: if the object was malformed in some way
    """
    count = 0
    length = len(text)
    while count < length:
        mode_end = text.find(b" ", count)
        if mode_end == -1:
            raise ObjectFormatException("truncated tree entry")
        mode_text = text[count:mode_end]
        if not mode_text or not all(c in _OCTAL_DIGITS for c in mode_text):
            raise ObjectFormatException(f"invalid mode {mode_text!r}")
        name_end = text.find(b"\0", mode_end)
        if name_end == -1:
            raise ObjectFormatException("truncated tree entry name")
        count = name_end + 21
        if count > length:
            raise ObjectFormatException("truncated tree entry id")
        yield (
            text[mode_end + 1 : name_end],
            int(mode_text, 8),
            sha_to_hex(text[name_end + 1 : count]),
        )


def key_entry(entry: tuple[bytes, tuple[int, ObjectID]]) -> bytes:
    """Sort key for tree entry.

    Args:
      entry: (name, (mode, sha)) tuple
    """
    (name, (mode, _sha)) = entry
    if stat.S_ISDIR(mode):
        name += b"/"
    return name


def parse_tree_path(path: bytes | str) -> list[bytes]:
    """Split a slash-delimited tree path into its segments.

    Raises:
      ValueError: for a leading slash, or an empty, '.' or '..' segment
    """
    if isinstance(path, str):
        path = path.encode("utf-8")
    if path.startswith(b"/"):
        raise ValueError(f"path must be relative: {path!r}")
    parts = path.split(b"/")
    for part in parts:
        if part in (b"", b".", b".."):
            raise ValueError(f"invalid path segment {part!r} in {path!r}")
    return parts


class Tree(ShaFile):
    """A Git tree object."""

    __slots__ = "_entries"

    type_name = b"tree"
    type_num = 2

    def __init__(self) -> None:
        """Initialize an empty Tree."""
        super().__init__()
        self._entries: dict[bytes, tuple[int, ObjectID]] = {}

    def _deserialize(self, chunks: list[bytes]) -> None:
        self._entries = {
            name: (mode, sha) for name, mode, sha in parse_tree(b"".join(chunks))
        }

    def _check(self) -> None:
        for name, (mode, sha) in self._entries.items():
            if name in (b"", b".", b"..") or b"/" in name:
                raise ObjectFormatException(f"invalid name {name!r}")
            if not valid_hexsha(sha):
                raise ObjectFormatException(f"invalid sha {sha!r}")

    def __contains__(self, name: object) -> bool:
        self._ensure_parsed()
        return name in self._entries

    def __getitem__(self, name: bytes) -> tuple[int, ObjectID]:
        """Look up an entry by its exact byte name.

        Returns: tuple of (mode, sha)
        """
        self._ensure_parsed()
        return self._entries[name]

    def __len__(self) -> int:
        self._ensure_parsed()
        return len(self._entries)

    def __iter__(self) -> Iterator[bytes]:
        self._ensure_parsed()
        return iter(self._entries)

    def items(self) -> list[TreeEntry]:
        """Return the entries of this tree in the order git sorts them."""
        self._ensure_parsed()
        return [
            TreeEntry(name, mode, sha)
            for name, (mode, sha) in sorted(self._entries.items(), key=key_entry)
        ]

    def as_pretty_string(self) -> bytes:
        """Return a string representation of this tree, like ls-tree."""
        text = []
        for entry in self.items():
            text.append(pretty_format_tree_entry(entry.path, entry.mode, entry.sha))
        return b"".join(text)

    def lookup_path(
        self, lookup_obj: Callable[[ObjectID], ShaFile], path: bytes | str
    ) -> tuple[int, ObjectID]:
        """Look up an object in a Git tree.

        Args:
          lookup_obj: Callback for retrieving object by SHA1
          path: Path to lookup
        Returns: A tuple of (mode, SHA) of the resulting path.
        Raises:
          ValueError: if the path is malformed
          NotTreeError: if an intermediate segment is not a tree
          PathMissing: if a segment does not exist
        """
        parts = parse_tree_path(path)
        tree: Tree = self
        for i, part in enumerate(parts):
            if i:
                tree = lookup_obj(sha).as_tree()
            try:
                mode, sha = tree[part]
            except KeyError as exc:
                raise PathMissing(b"/".join(parts[: i + 1])) from exc
        return mode, sha


def pretty_format_tree_entry(name: bytes, mode: int, hexsha: bytes) -> bytes:
    """Pretty format tree entry.

    Args:
      name: Name of the directory entry
      mode: Mode of entry
      hexsha: Hexsha of the referenced object
    Returns: string describing the tree entry
    """
    if stat.S_ISDIR(mode):
        kind = "tree"
    elif S_ISGITLINK(mode):
        kind = "commit"
    else:
        kind = "blob"
    return (
        f"{mode:06o} {kind} ".encode("ascii") + hexsha + b"\t" + name + b"\n"
    )


class Commit(ShaFile):
    """A git commit object."""

    __slots__ = (
        "_author",
        "_author_time",
        "_author_timezone",
        "_commit_time",
        "_commit_timezone",
        "_committer",
        "_encoding",
        "_extra",
        "_gpgsig",
        "_message",
        "_parents",
        "_tree",
    )

    type_name = b"commit"
    type_num = 1

    def _deserialize(self, chunks: list[bytes]) -> None:
        self._tree: ObjectID | None = None
        self._parents: list[ObjectID] = []
        self._author: bytes | None = None
        self._author_time: int | None = None
        self._author_timezone: int | None = None
        self._committer: bytes | None = None
        self._commit_time: int | None = None
        self._commit_timezone: int | None = None
        self._encoding: bytes | None = None
        self._gpgsig: bytes | None = None
        self._extra: list[tuple[bytes, bytes]] = []
        self._message = b""
        for field, value in _parse_message(chunks):
            if field == _TREE_HEADER:
                self._tree = ObjectID(value)
            elif field == _PARENT_HEADER:
                self._parents.append(ObjectID(value))
            elif field == _AUTHOR_HEADER:
                (self._author, self._author_time, self._author_timezone) = (
                    parse_time_entry(value)
                )
            elif field == _COMMITTER_HEADER:
                (self._committer, self._commit_time, self._commit_timezone) = (
                    parse_time_entry(value)
                )
            elif field == _ENCODING_HEADER:
                self._encoding = value
            elif field == _GPGSIG_HEADER:
                self._gpgsig = value
            elif field is None:
                self._message = value
            else:
                self._extra.append((field, value))
        if self._tree is None:
            raise ObjectFormatException("commit has no tree")

    def _check(self) -> None:
        if self._tree is None or not valid_hexsha(self._tree):
            raise ObjectFormatException(f"invalid tree {self._tree!r}")
        for parent in self._parents:
            if not valid_hexsha(parent):
                raise ObjectFormatException(f"invalid parent {parent!r}")
        if self._author is None:
            raise ObjectFormatException("commit has no author")
        if self._committer is None:
            raise ObjectFormatException("commit has no committer")

    tree = _lazy_property("tree", "Tree that is the state of this commit")
    parents = _lazy_property("parents", "Parents of this commit, in order")
    author = _lazy_property("author", "The name of the author of the commit")
    committer = _lazy_property(
        "committer", "The name of the committer of the commit"
    )
    message = _lazy_property("message", "The commit message")
    commit_time = _lazy_property(
        "commit_time",
        "The timestamp of the commit. As the number of seconds since the epoch.",
    )
    commit_timezone = _lazy_property(
        "commit_timezone", "The zone the commit time is in"
    )
    author_time = _lazy_property(
        "author_time",
        "The timestamp the commit was written. As the number of "
        "seconds since the epoch.",
    )
    author_timezone = _lazy_property(
        "author_timezone", "Returns the zone the author time is in."
    )
    encoding = _lazy_property("encoding", "Encoding of the commit message.")
    gpgsig = _lazy_property("gpgsig", "GPG Signature.")
    extra = _lazy_property("extra", "Unknown headers, in order of appearance")


OBJECT_CLASSES = (
    Commit,
    Tree,
    Blob,
    Tag,
)

_TYPE_MAP: dict[bytes | int, type[ShaFile]] = {}

for cls in OBJECT_CLASSES:
    _TYPE_MAP[cls.type_name] = cls
    _TYPE_MAP[cls.type_num] = cls
