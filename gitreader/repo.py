# repo.py -- For dealing with git repositories.
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


"""Repository access.

This module contains the Repo class, which ties together the object store
and the refs of a repository on disk.
"""

__all__ = [
    "CONTROLDIR",
    "OBJECTDIR",
    "Repo",
]

import os
from types import TracebackType

from .errors import NotGitRepository
from .log_utils import getLogger
from .object_store import DiskObjectStore, tree_lookup_path
from .objects import Blob, ObjectID, RawObjectID, ShaFile, parse_tree_path
from .refs import DiskRefsContainer, Ref

logger = getLogger(__name__)

CONTROLDIR = ".git"
OBJECTDIR = "objects"


class Repo:
    """A git repository backed by local disk, opened read-only.

    To open an existing repository, call the constructor with the path of
    its working tree or, for a bare repository, of its control directory.

    The repository holds memory mappings of its pack files; call .close()
    (or use it as a context manager) to release them.

    Attributes:
      path: Path to the working copy (if it exists) or repository control
        directory (if the repository is bare)
      bare: Whether this is a bare repository
      object_store: The DiskObjectStore holding the loader chain
      refs: The DiskRefsContainer for the control directory
    """

    path: str
    bare: bool
    object_store: DiskObjectStore
    refs: DiskRefsContainer

    def __init__(
        self,
        root: str | bytes | os.PathLike[str],
        *,
        delta_cache_size: int | None = None,
    ) -> None:
        """Open a repository on disk.

        Args:
          root: Path to the repository's root.
          delta_cache_size: Bytes of reconstructed delta bases to keep per
            pack; defaults to DEFAULT_DELTA_CACHE_SIZE
        Raises:
          NotGitRepository: if neither root/.git/objects nor root/objects is
            a directory
        """
        root = os.fspath(root)
        if isinstance(root, bytes):
            root = os.fsdecode(root)
        hidden_path = os.path.join(root, CONTROLDIR)
        if os.path.isdir(os.path.join(hidden_path, OBJECTDIR)):
            self.bare = False
            self._controldir = hidden_path
        elif os.path.isdir(os.path.join(root, OBJECTDIR)):
            self.bare = True
            self._controldir = root
        else:
            raise NotGitRepository(f"No git repository was found at {root}")
        self.path = root
        logger.debug(
            "Opening %s repository at %s",
            "bare" if self.bare else "non-bare",
            self._controldir,
        )
        self.object_store = DiskObjectStore(
            os.path.join(self._controldir, OBJECTDIR),
            delta_cache_size=delta_cache_size,
        )
        self.refs = DiskRefsContainer(self._controldir)

    @classmethod
    def discover(cls, start: str | bytes | os.PathLike[str] = ".") -> "Repo":
        """Iterate parent directories to discover a repository.

        Return a Repo object for the first parent directory that looks like a
        Git repository.

        Args:
          start: The directory to start discovery from (defaults to '.')
        """
        path = os.path.abspath(os.fsdecode(os.fspath(start)))
        while True:
            try:
                return cls(path)
            except NotGitRepository:
                new_path, _tail = os.path.split(path)
                if new_path == path:  # Root reached
                    break
                path = new_path
        raise NotGitRepository(
            f"No git repository was found at {os.fsdecode(os.fspath(start))}"
        )

    def controldir(self) -> str:
        """Return the path of the control directory."""
        return self._controldir

    def __repr__(self) -> str:
        return f"<Repo at {self.path!r}>"

    def resolve_ref(self, ref: bytes | str) -> ObjectID:
        """Resolve a ref, branch or tag name, or object id, to an object id.

        Raises:
          UnknownRef: if the name can not be resolved
          SymrefLoop: if symbolic refs nest too deeply
        """
        return self.refs.resolve(ref)

    def get_object(self, sha: ObjectID | RawObjectID) -> ShaFile:
        """Retrieve the object with the specified SHA.

        Args:
          sha: SHA to retrieve
        Returns: A ShaFile object
        Raises:
          ObjectMissing: if no loader has the object
        """
        return self.object_store[sha]

    def __getitem__(self, name: ObjectID | RawObjectID) -> ShaFile:
        """Retrieve an object by SHA1."""
        return self.get_object(name)

    def __contains__(self, name: object) -> bool:
        """Check if a specific object is present in the repository."""
        return name in self.object_store

    def get_refs(self) -> dict[Ref, ObjectID]:
        """Get dictionary with all refs.

        Returns: A ``dict`` mapping ref names to SHA1s
        """
        return self.refs.as_dict()

    def resolve(self, ref: bytes | str, path: bytes | str) -> ObjectID:
        """Find the id of the object at a path in the tree of a commit.

        Args:
          ref: Name resolving to a commit
          path: Slash-separated path relative to the root of the tree
        Returns: the id of the entry at path, whatever its type
        Raises:
          ValueError: if path is malformed
          UnknownRef: if ref can not be resolved
          NotCommitError: if ref does not name a commit
          NotTreeError: if the tree or an intermediate entry is not a tree
          PathMissing: if a path segment does not exist
        """
        parse_tree_path(path)
        commit = self.get_object(self.resolve_ref(ref)).as_commit()
        _mode, sha = tree_lookup_path(self.get_object, commit.tree, path)
        return sha

    def cat_file(self, ref: bytes | str, path: bytes | str) -> Blob:
        """Return the blob at a path in the tree of a commit.

        Raises:
          NotBlobError: if the entry at path is not a blob
        """
        return self.get_object(self.resolve(ref, path)).as_blob()

    def close(self) -> None:
        """Close any files opened by this repository."""
        self.object_store.close()

    def __enter__(self) -> "Repo":
        return self

    def __exit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()
