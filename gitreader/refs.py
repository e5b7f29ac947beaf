# refs.py -- For dealing with git refs
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


"""Ref handling.

Refs are read, never written. A name given by a user is resolved by trying
``refs/heads/<name>``, then ``refs/tags/<name>``, then ``<name>`` relative
to the control directory; ``HEAD`` is read directly. Each candidate is looked
for as a loose file first and then in ``packed-refs``, and symbolic refs are
followed to the object id they finally name.
"""

__all__ = [
    "HEADREF",
    "LOCAL_BRANCH_PREFIX",
    "LOCAL_TAG_PREFIX",
    "MAX_SYMREF_DEPTH",
    "SYMREF",
    "DiskRefsContainer",
    "check_ref_name",
    "parse_symref_value",
    "read_packed_refs",
    "read_packed_refs_with_peeled",
]

import os
from collections.abc import Iterator
from typing import IO

from .errors import PackedRefsException, SymrefLoop, UnknownRef
from .log_utils import getLogger
from .objects import ObjectID, valid_hexsha

logger = getLogger(__name__)

Ref = bytes

HEADREF = b"HEAD"
SYMREF = b"ref: "
LOCAL_BRANCH_PREFIX = b"refs/heads/"
LOCAL_TAG_PREFIX = b"refs/tags/"
PEELED_TAG_SUFFIX = b"^{}"

# Chains of more symbolic refs than this are treated as a loop
MAX_SYMREF_DEPTH = 5

_SEARCH_PREFIXES = (LOCAL_BRANCH_PREFIX, LOCAL_TAG_PREFIX, b"")


def _to_bytes(name: bytes | str) -> bytes:
    if isinstance(name, str):
        return name.encode("utf-8")
    return name


def parse_symref_value(contents: bytes) -> bytes:
    """Parse a symref value.

    Args:
      contents: Contents to parse
    Returns: Destination
    """
    if contents.startswith(SYMREF):
        return contents[len(SYMREF) :].strip()
    raise ValueError(contents)


def check_ref_name(name: bytes) -> bool:
    """Check whether a ref name is safe to look up below the control directory.

    Names may not be empty, start with a slash, contain an empty, '.' or
    '..' component, a NUL byte or a backslash.

    Args:
      name: The ref name to check
    Returns: True if name may be looked up, False otherwise
    """
    if not name or name.startswith(b"/"):
        return False
    if b"\0" in name or b"\\" in name:
        return False
    for component in name.split(b"/"):
        if component in (b"", b".", b".."):
            return False
    return True


def _split_ref_line(line: bytes) -> tuple[bytes, bytes]:
    """Split a single ref line into a tuple of SHA1 and name."""
    fields = line.rstrip(b"\n\r").split(b" ")
    if len(fields) != 2:
        raise PackedRefsException(f"invalid ref line {line!r}")
    sha, name = fields
    if not valid_hexsha(sha):
        raise PackedRefsException(f"Invalid hex sha {sha!r}")
    if not check_ref_name(name):
        raise PackedRefsException(f"invalid ref name {name!r}")
    return (sha.lower(), name)


def read_packed_refs(f: IO[bytes]) -> Iterator[tuple[bytes, bytes]]:
    """Read a packed refs file.

    Args:
      f: file-like object to read from
    Returns: Iterator over tuples with SHA1s and ref names.
    """
    for line in f:
        if line.startswith(b"#"):
            # Comment
            continue
        if line.startswith(b"^"):
            raise PackedRefsException("found peeled ref in packed-refs without peeled")
        if not line.strip():
            continue
        yield _split_ref_line(line)


def read_packed_refs_with_peeled(
    f: IO[bytes],
) -> Iterator[tuple[bytes, bytes, bytes | None]]:
    """Read a packed refs file including peeled refs.

    Assumes the "# pack-refs with: peeled" line was already read. Yields tuples
    with ref names, SHA1s, and peeled SHA1s (or None).

    Args:
      f: file-like object to read from, seek'ed to the second line
    """
    last = None
    for line in f:
        if line.startswith(b"#"):
            continue
        line = line.rstrip(b"\r\n")
        if not line:
            continue
        if line.startswith(b"^"):
            if not last:
                raise PackedRefsException("unexpected peeled ref line")
            if not valid_hexsha(line[1:]):
                raise PackedRefsException(f"Invalid hex sha {line[1:]!r}")
            sha, name = _split_ref_line(last)
            last = None
            yield (sha, name, line[1:].lower())
        else:
            if last:
                sha, name = _split_ref_line(last)
                yield (sha, name, None)
            last = line
    if last:
        sha, name = _split_ref_line(last)
        yield (sha, name, None)


class DiskRefsContainer:
    """Refs container that reads refs from a control directory on disk."""

    def __init__(self, path: str | bytes | os.PathLike[str]) -> None:
        """Initialize DiskRefsContainer.

        Args:
          path: The control directory (gitdir) holding HEAD and refs/
        """
        self.path = os.fsencode(os.fspath(path))
        self._packed_refs: dict[Ref, ObjectID] | None = None
        self._peeled_refs: dict[Ref, ObjectID] | None = None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.path!r})"

    def refpath(self, name: Ref) -> bytes:
        """Return the disk path of a ref."""
        path = name
        if os.path.sep != "/":
            path = path.replace(b"/", os.fsencode(os.path.sep))
        return os.path.join(self.path, path)

    def _iter_loose_refs(self, base: bytes = b"refs/") -> Iterator[Ref]:
        refspath = os.path.join(self.path, base.rstrip(b"/"))
        prefix_len = len(os.path.join(self.path, b""))
        for root, dirs, files in os.walk(refspath):
            dirs.sort()
            directory = root[prefix_len:]
            if os.path.sep != "/":
                directory = directory.replace(os.fsencode(os.path.sep), b"/")
            for filename in sorted(files):
                refname = b"/".join([directory, filename])
                if check_ref_name(refname):
                    yield refname

    def allkeys(self) -> set[Ref]:
        """Return all reference keys: HEAD, loose refs and packed refs."""
        allkeys = set()
        if os.path.isfile(self.refpath(HEADREF)):
            allkeys.add(HEADREF)
        allkeys.update(self._iter_loose_refs())
        allkeys.update(self.get_packed_refs())
        return allkeys

    def __iter__(self) -> Iterator[Ref]:
        return iter(self.allkeys())

    def as_dict(self) -> dict[Ref, ObjectID]:
        """Return every ref mapped to the object id it resolves to.

        Refs that can not be resolved, such as dangling symbolic refs, and
        refs whose contents are not an object id are left out.
        """
        ret = {}
        for key in sorted(self.allkeys()):
            try:
                sha = self[key]
            except (SymrefLoop, KeyError) as exc:
                logger.debug("Skipping unresolvable ref %r: %s", key, exc)
                continue
            if not valid_hexsha(sha):
                logger.debug("Skipping ref %r with contents %r", key, sha)
                continue
            ret[key] = sha
        return ret

    def get_packed_refs(self) -> dict[Ref, ObjectID]:
        """Get contents of the packed-refs file.

        Returns: Dictionary mapping ref names to SHA1s

        Note: Will return an empty dictionary when no packed-refs file is
            present.
        """
        if self._packed_refs is None:
            packed_refs: dict[Ref, ObjectID] = {}
            peeled_refs: dict[Ref, ObjectID] = {}
            path = os.path.join(self.path, b"packed-refs")
            try:
                f = open(path, "rb")
            except FileNotFoundError:
                f = None
            if f is not None:
                with f:
                    first_line = f.readline().rstrip()
                    if (
                        first_line.startswith(b"# pack-refs")
                        and b" peeled" in first_line
                    ):
                        for sha, name, peeled in read_packed_refs_with_peeled(f):
                            packed_refs[name] = ObjectID(sha)
                            if peeled:
                                peeled_refs[name] = ObjectID(peeled)
                    else:
                        f.seek(0)
                        for sha, name in read_packed_refs(f):
                            packed_refs[name] = ObjectID(sha)
            self._packed_refs = packed_refs
            self._peeled_refs = peeled_refs
        return self._packed_refs

    def get_peeled(self, name: Ref) -> ObjectID | None:
        """Return the peeled value recorded in packed-refs for a ref, if any."""
        self.get_packed_refs()
        assert self._peeled_refs is not None
        return self._peeled_refs.get(name)

    def read_loose_ref(self, name: Ref) -> bytes | None:
        """Read a reference file and return its contents.

        Only the first line is used, with trailing whitespace removed.

        Args:
          name: the refname to read, relative to refpath
        Returns: The contents of the ref file, or None if the file does not
            exist.
        Raises:
          OSError: if any other error occurs
        """
        filename = self.refpath(name)
        try:
            with open(filename, "rb") as f:
                first_line = f.readline()
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError):
            return None
        return first_line.rstrip()

    def read_ref(self, refname: Ref) -> bytes | None:
        """Read a reference without following any references.

        Args:
          refname: The name of the reference
        Returns: The contents of the ref file or its packed-refs entry, or
            None if it does not exist.
        """
        contents = self.read_loose_ref(refname)
        if not contents:
            contents = self.get_packed_refs().get(refname, None)
        return contents

    def follow(self, name: Ref) -> tuple[list[Ref], bytes | None]:
        """Follow a reference name.

        Returns: a tuple of (refnames, sha), wheres refnames are the names of
            references in the chain
        Raises:
          SymrefLoop: if more than MAX_SYMREF_DEPTH symbolic refs are chained
          UnknownRef: if a symbolic ref points at an invalid name
        """
        contents: bytes | None = SYMREF + name
        depth = 0
        refnames = []
        while contents and contents.startswith(SYMREF):
            refname = parse_symref_value(contents)
            if not check_ref_name(refname):
                raise UnknownRef(refname)
            refnames.append(refname)
            contents = self.read_ref(refname)
            if not contents or not contents.startswith(SYMREF):
                break
            depth += 1
            if depth > MAX_SYMREF_DEPTH:
                raise SymrefLoop(name, depth)
        return refnames, contents

    def __contains__(self, refname: object) -> bool:
        if not isinstance(refname, (bytes, str)):
            return False
        refname = _to_bytes(refname)
        return check_ref_name(refname) and bool(self.read_ref(refname))

    def __getitem__(self, name: Ref) -> ObjectID:
        """Get the SHA1 for an exact reference name.

        This method follows all symbolic references. The contents of the
        final ref are returned as read, without checking that they form an
        object id.
        """
        name = _to_bytes(name)
        if not check_ref_name(name):
            raise UnknownRef(name)
        _, sha = self.follow(name)
        if sha is None:
            raise UnknownRef(name)
        return ObjectID(sha)

    def _candidates(self, name: Ref) -> list[Ref]:
        if name == HEADREF:
            return [HEADREF]
        return [prefix + name for prefix in _SEARCH_PREFIXES]

    def resolve(self, name: bytes | str) -> ObjectID:
        """Resolve a user supplied name to an object id.

        ``HEAD`` is read from the control directory. Other names are tried as
        a branch, then a tag, then a path relative to the control directory;
        the first that exists wins. The contents of the ref found are returned
        with trailing whitespace removed and are not checked to be an object
        id. A name that matches no ref but is a 40 character hex object id is
        returned as is, lowercased.

        Args:
          name: ref name, branch or tag name, or object id
        Returns: the contents of the ref, normally a 40 character hex object id
        Raises:
          UnknownRef: if nothing matches, or the name is not a safe ref name
          SymrefLoop: if symbolic refs nest too deeply
        """
        name = _to_bytes(name)
        if not check_ref_name(name):
            raise UnknownRef(name)
        for candidate in self._candidates(name):
            refnames, sha = self.follow(candidate)
            if sha is not None:
                logger.debug("Resolved %r via %r", name, refnames)
                return ObjectID(sha)
            if len(refnames) > 1:
                # Dangling symbolic ref
                raise UnknownRef(name)
        if valid_hexsha(name):
            return ObjectID(name.lower())
        raise UnknownRef(name)
