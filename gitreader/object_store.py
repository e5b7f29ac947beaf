# object_store.py -- Object store for git objects
# Copyright (C) 2008-2013 Jelmer Vernooij <jelmer@jelmer.uk>
#                         and others
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

"""Git object store interfaces and implementation."""

__all__ = [
    "PACKDIR",
    "BaseObjectStore",
    "DiskObjectStore",
    "LooseObjectLoader",
    "ObjectLoader",
    "OverlayObjectStore",
    "tree_lookup_path",
]

import os
import zlib
from collections.abc import Callable, Iterable, Iterator
from types import TracebackType
from typing import Protocol

from .errors import ObjectFormatException, ObjectMissing
from .log_utils import getLogger
from .objects import (
    ObjectID,
    RawObjectID,
    ShaFile,
    hex_to_filename,
    parse_object_header,
    sha_to_hex,
    valid_hexsha,
)
from .pack import Pack

logger = getLogger(__name__)

PACKDIR = "pack"


def _normalize_sha(sha: ObjectID | RawObjectID | str) -> ObjectID:
    """Return the lowercase hex form of a binary or hex object id."""
    if isinstance(sha, str):
        sha = sha.encode("ascii", "replace")
    if len(sha) == 20:
        return sha_to_hex(sha)
    return ObjectID(sha.lower())


class ObjectLoader(Protocol):
    """A source of raw objects, such as a directory of loose objects or a pack.

    Absence of an object is signalled by raising ObjectMissing.
    """

    def get_raw(self, sha1: ObjectID | RawObjectID) -> tuple[int, bytes]:
        """Return (type_num, raw contents) for an object."""
        ...

    def __contains__(self, sha1: object) -> bool:
        """Check whether the object is present."""
        ...

    def close(self) -> None:
        """Release resources held by the loader."""
        ...


class BaseObjectStore:
    """Object store interface."""

    def get_raw(self, name: ObjectID | RawObjectID) -> tuple[int, bytes]:
        """Obtain the raw text for an object.

        Args:
          name: sha for the object.
        Returns: tuple with numeric type and object contents.
        Raises:
          ObjectMissing: if the object is not present
        """
        raise NotImplementedError(self.get_raw)

    def __contains__(self, sha1: object) -> bool:
        """Check if a particular object is present by SHA1."""
        raise NotImplementedError(self.__contains__)

    def __getitem__(self, sha1: ObjectID | RawObjectID) -> ShaFile:
        """Obtain an object by SHA1.

        The object is decoded lazily; its id is not verified against sha1.
        """
        type_num, uncomp = self.get_raw(sha1)
        return ShaFile.from_raw_string(type_num, uncomp)

    def close(self) -> None:
        """Close any files opened by this object store."""

    def __enter__(self) -> "BaseObjectStore":
        return self

    def __exit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()


class LooseObjectLoader(BaseObjectStore):
    """Loads zlib-compressed loose objects from an objects/ directory."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        """Open a directory of loose objects.

        Args:
          path: Path of the objects directory
        """
        self.path = os.fspath(path)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}({self.path!r})>"

    def _get_shafile_path(self, sha: ObjectID) -> str:
        return hex_to_filename(self.path, sha)  # type: ignore[return-value]

    def __contains__(self, sha1: object) -> bool:
        if not isinstance(sha1, (bytes, str)):
            return False
        sha = _normalize_sha(sha1)
        if not valid_hexsha(sha):
            return False
        return os.path.isfile(self._get_shafile_path(sha))

    def __iter__(self) -> Iterator[ObjectID]:
        """Iterate over the ids of all loose objects."""
        try:
            bases = sorted(os.listdir(self.path))
        except FileNotFoundError:
            return
        for base in bases:
            if len(base) != 2:
                continue
            subdir = os.path.join(self.path, base)
            if not os.path.isdir(subdir):
                continue
            for rest in sorted(os.listdir(subdir)):
                sha = os.fsencode(base + rest)
                if valid_hexsha(sha):
                    yield ObjectID(sha)

    def get_raw(self, sha1: ObjectID | RawObjectID) -> tuple[int, bytes]:
        """Read, inflate and split a loose object.

        Raises:
          ObjectMissing: if there is no file for the object
          ObjectFormatException: if the file is not a valid loose object
          OSError: for other failures reading the file
        """
        sha = _normalize_sha(sha1)
        if not valid_hexsha(sha):
            raise ObjectMissing(sha)
        path = self._get_shafile_path(sha)
        try:
            with open(path, "rb") as f:
                compressed = f.read()
        except FileNotFoundError as exc:
            raise ObjectMissing(sha) from exc
        try:
            data = zlib.decompress(compressed)
        except zlib.error as exc:
            raise ObjectFormatException(
                f"{path}: corrupt loose object: {exc}"
            ) from exc
        return parse_object_header(data)


class OverlayObjectStore(BaseObjectStore):
    """Object store that asks a sequence of loaders in turn.

    The first loader that has the object wins. A loader reporting the
    requested object as missing passes the request on to the next one; any
    other error, including a missing delta base, ends the lookup.
    """

    def __init__(self, bases: Iterable[ObjectLoader]) -> None:
        """Initialize an OverlayObjectStore.

        Args:
          bases: Loaders to consult, in order
        """
        self.bases: tuple[ObjectLoader, ...] = tuple(bases)

    def get_raw(self, sha_id: ObjectID | RawObjectID) -> tuple[int, bytes]:
        """Get the raw object data from the overlaid stores.

        Args:
          sha_id: SHA of the object
        Returns:
          Tuple of (type_num, raw_data)
        Raises:
          ObjectMissing: If object not found in any base store
        """
        sha = _normalize_sha(sha_id)
        for b in self.bases:
            try:
                return b.get_raw(sha)
            except ObjectMissing as exc:
                if _normalize_sha(exc.sha) != sha:
                    raise
                logger.debug("%s not in %r", sha.decode("ascii", "replace"), b)
        raise ObjectMissing(sha)

    def __contains__(self, sha1: object) -> bool:
        return any(sha1 in b for b in self.bases)

    def close(self) -> None:
        """Close every loader."""
        for b in self.bases:
            b.close()


class DiskObjectStore(OverlayObjectStore):
    """Git-style object store that exists on disk.

    Loose objects are consulted first, then one pack per index file found
    in the pack directory when the store was opened.
    """

    def __init__(
        self,
        path: str | os.PathLike[str],
        *,
        delta_cache_size: int | None = None,
    ) -> None:
        """Open an object store.

        Args:
          path: Path of the object store.
          delta_cache_size: Bytes of reconstructed delta bases to keep per pack
        """
        self.path = os.fspath(path)
        self.pack_dir = os.path.join(self.path, PACKDIR)
        self.delta_cache_size = delta_cache_size
        self.loose = LooseObjectLoader(self.path)
        packs = self._load_packs()
        super().__init__([self.loose, *packs])
        self._packs = tuple(packs)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}({self.path!r})>"

    @property
    def packs(self) -> tuple[Pack, ...]:
        """The packs opened with this store."""
        return self._packs

    def _load_packs(self) -> list[Pack]:
        """Open one Pack for every index file that has matching pack data."""
        try:
            pack_dir_contents = sorted(os.listdir(self.pack_dir))
        except FileNotFoundError:
            return []
        packs: list[Pack] = []
        try:
            for name in pack_dir_contents:
                if not name.endswith(".idx"):
                    continue
                basename = os.path.join(self.pack_dir, name[: -len(".idx")])
                if not os.path.isfile(basename + ".pack"):
                    logger.warning("Skipping %s: no matching .pack file", name)
                    continue
                pack = Pack(
                    basename,
                    resolve_ext_ref=self._resolve_ext_ref,
                    delta_cache_size=self.delta_cache_size,
                )
                packs.append(pack)
                pack.check_length_and_checksum()
        except BaseException:
            for pack in packs:
                pack.close()
            raise
        logger.debug("Found %d packs in %s", len(packs), self.pack_dir)
        return packs

    def _resolve_ext_ref(self, sha: ObjectID) -> tuple[int, bytes]:
        return self.get_raw(sha)


def tree_lookup_path(
    lookup_obj: Callable[[ObjectID], ShaFile],
    root_sha: ObjectID,
    path: bytes | str,
) -> tuple[int, ObjectID]:
    """Look up an object in a Git tree.

    Args:
      lookup_obj: Callback for retrieving object by SHA1
      root_sha: SHA1 of the root tree
      path: Path to lookup
    Returns: A tuple of (mode, SHA) of the resulting path.
    Raises:
      ValueError: if the path is malformed
      NotTreeError: if the root or an intermediate object is not a tree
      PathMissing: if the path does not exist
    """
    tree = lookup_obj(root_sha).as_tree()
    return tree.lookup_path(lookup_obj, path)
