# errors.py -- errors for gitreader
# Copyright (C) 2007 James Westby <jw+debian@jameswestby.net>
# Copyright (C) 2009-2012 Jelmer Vernooij <jelmer@jelmer.uk>
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

"""gitreader exception classes.

Failures of the operating system are not wrapped; they propagate as
:class:`OSError`.
"""

__all__ = [
    "ApplyDeltaError",
    "ChecksumMismatch",
    "FileFormatException",
    "NotBlobError",
    "NotCommitError",
    "NotFound",
    "NotGitRepository",
    "NotTagError",
    "NotTreeError",
    "ObjectFormatException",
    "ObjectMissing",
    "PackedRefsException",
    "PathMissing",
    "SymrefLoop",
    "UnknownRef",
    "UnsupportedIndex",
    "WrongObjectException",
]

import binascii


def _to_display(value: bytes | str) -> str:
    if isinstance(value, bytes):
        return value.decode("ascii", "replace")
    return value


class ChecksumMismatch(Exception):
    """A checksum didn't match the expected contents."""

    def __init__(
        self,
        expected: bytes | str,
        got: bytes | str,
        extra: str | None = None,
    ) -> None:
        """Initialize a ChecksumMismatch exception.

        Args:
            expected: The expected checksum value (binary or hex).
            got: The actual checksum value (binary or hex).
            extra: Optional additional error information.
        """
        if isinstance(expected, bytes) and len(expected) == 20:
            expected = binascii.hexlify(expected)
        if isinstance(got, bytes) and len(got) == 20:
            got = binascii.hexlify(got)
        self.expected = _to_display(expected)
        self.got = _to_display(got)
        self.extra = extra
        message = f"Checksum mismatch: Expected {self.expected}, got {self.got}"
        if self.extra is not None:
            message += f"; {extra}"
        Exception.__init__(self, message)


class WrongObjectException(Exception):
    """Baseclass for all the _ is not a _ exceptions on objects.

    Do not instantiate directly.

    Subclasses should define a type_name attribute that indicates what
    was expected if they were raised.
    """

    type_name: str

    def __init__(self, sha: bytes, *args: object) -> None:
        """Initialize a WrongObjectException.

        Args:
            sha: The SHA of the object that was not of the expected type.
            *args: Additional positional arguments.
        """
        self.sha = sha
        Exception.__init__(self, f"{_to_display(sha)} is not a {self.type_name}")


class NotCommitError(WrongObjectException):
    """Indicates that the sha requested does not point to a commit."""

    type_name = "commit"


class NotTreeError(WrongObjectException):
    """Indicates that the sha requested does not point to a tree."""

    type_name = "tree"


class NotTagError(WrongObjectException):
    """Indicates that the sha requested does not point to a tag."""

    type_name = "tag"


class NotBlobError(WrongObjectException):
    """Indicates that the sha requested does not point to a blob."""

    type_name = "blob"


class NotFound(KeyError):
    """Something that was looked up is not present."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class ObjectMissing(NotFound):
    """Indicates that a requested object is missing."""

    def __init__(self, sha: bytes) -> None:
        """Initialize an ObjectMissing exception.

        Args:
            sha: The hex SHA of the missing object.
        """
        self.sha = sha
        super().__init__(f"{_to_display(sha)} is not in the object store")


class PathMissing(NotFound):
    """Indicates that a path does not exist in a tree."""

    def __init__(self, path: bytes) -> None:
        """Initialize a PathMissing exception.

        Args:
            path: The path (or path segment) that could not be found.
        """
        self.path = path
        super().__init__(f"{_to_display(path)} does not exist in the tree")


class UnknownRef(KeyError):
    """Indicates that a ref name could not be resolved."""

    def __init__(self, name: bytes) -> None:
        """Initialize an UnknownRef exception.

        Args:
            name: The ref name as given by the caller.
        """
        self.name = name
        super().__init__(name)

    def __str__(self) -> str:
        return f"unknown ref {_to_display(self.name)}"


class SymrefLoop(Exception):
    """There is a loop between one or more symrefs."""

    def __init__(self, ref: bytes, depth: int) -> None:
        """Initialize SymrefLoop exception.

        Args:
            ref: The ref whose resolution started the loop.
            depth: The depth at which resolution was abandoned.
        """
        self.ref = ref
        self.depth = depth
        Exception.__init__(
            self, f"symbolic ref {_to_display(ref)} nested deeper than {depth - 1}"
        )


class NotGitRepository(Exception):
    """Indicates that no Git repository was found."""


class FileFormatException(Exception):
    """Base class for exceptions relating to reading git file formats."""


class PackedRefsException(FileFormatException):
    """Indicates an error parsing a packed-refs file."""


class ObjectFormatException(FileFormatException):
    """Indicates an error parsing an object."""


class ApplyDeltaError(FileFormatException):
    """Indicates that applying a delta failed."""


class UnsupportedIndex(FileFormatException):
    """Indicates a pack index of a version that can not be read."""

    def __init__(self, path: str, version: int) -> None:
        """Initialize an UnsupportedIndex exception.

        Args:
            path: Path of the index file.
            version: The detected index version.
        """
        self.path = path
        self.version = version
        super().__init__(f"{path}: unsupported pack index version {version}")
