#
# gitreader - Simple command-line interface to gitreader
# Copyright (C) 2008-2011 Jelmer Vernooij <jelmer@jelmer.uk>
# vim: expandtab
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

"""Simple command-line interface to gitreader.

This is a very simple command-line wrapper for gitreader. It is by
no means intended to be a full-blown Git command-line interface but just
a way to inspect repositories with gitreader.
"""

__all__ = [
    "Command",
    "commands",
    "main",
]

import argparse
import os
import signal
import sys
import types
from collections.abc import Sequence
from typing import BinaryIO, ClassVar

from .errors import (
    ChecksumMismatch,
    FileFormatException,
    NotFound,
    NotGitRepository,
    SymrefLoop,
    UnknownRef,
    WrongObjectException,
)
from .log_utils import default_logging_config, getLogger
from .objects import ShaFile, object_class
from .pack import Pack
from .refs import HEADREF
from .repo import Repo

logger = getLogger(__name__)

# Errors reported as a one-line message and exit status 1
_REPORTED_ERRORS = (
    ChecksumMismatch,
    FileFormatException,
    NotFound,
    NotGitRepository,
    SymrefLoop,
    UnknownRef,
    WrongObjectException,
    ValueError,
    OSError,
)


def signal_int(signal: int, frame: types.FrameType | None) -> None:
    """Handle interrupt signal by exiting.

    Args:
        signal: Signal number
        frame: Current stack frame
    """
    sys.exit(1)


def _stdout() -> BinaryIO:
    return sys.stdout.buffer


class Command:
    """A gitreader subcommand."""

    help: ClassVar[str] = ""

    def __init__(self, git_dir: str | None = None) -> None:
        """Create a command.

        Args:
          git_dir: Repository to operate on; when None, GIT_DIR is used if
            set, otherwise the repository is discovered from the current
            directory.
        """
        self.git_dir = git_dir

    def open_repo(self) -> Repo:
        """Open the repository this command operates on."""
        if self.git_dir is not None:
            return Repo(self.git_dir)
        git_dir = os.environ.get("GIT_DIR")
        if git_dir:
            return Repo(git_dir)
        return Repo.discover()

    def run(self, args: Sequence[str]) -> int | None:
        """Run the command."""
        raise NotImplementedError(self.run)


class cmd_rev_parse(Command):
    """Resolve a ref name to an object id."""

    help = "Resolve a ref name to an object id"

    def run(self, args: Sequence[str]) -> None:
        """Execute the rev-parse command.

        Args:
            args: Command line arguments
        """
        parser = argparse.ArgumentParser(prog="rev-parse")
        parser.add_argument("ref", help="Ref, branch, tag or object id")
        parsed_args = parser.parse_args(args)
        with self.open_repo() as repo:
            sha = repo.resolve_ref(parsed_args.ref)
        _stdout().write(sha + b"\n")


class cmd_cat_file(Command):
    """Show the type, size or contents of an object."""

    help = "Show the type, size or contents of an object"

    def run(self, args: Sequence[str]) -> None:
        """Execute the cat-file command.

        Args:
            args: Command line arguments
        """
        parser = argparse.ArgumentParser(prog="cat-file")
        group = parser.add_mutually_exclusive_group()
        group.add_argument(
            "-t", dest="mode", action="store_const", const="type", help="Show type"
        )
        group.add_argument(
            "-s", dest="mode", action="store_const", const="size", help="Show size"
        )
        group.add_argument(
            "-p",
            dest="mode",
            action="store_const",
            const="pretty",
            help="Pretty-print contents (default)",
        )
        parser.add_argument("object", help="Object id, ref, or REF:PATH")
        parsed_args = parser.parse_args(args)
        with self.open_repo() as repo:
            obj = _lookup_object(repo, parsed_args.object)
            out = _stdout()
            if parsed_args.mode == "type":
                out.write(obj.type_name + b"\n")
            elif parsed_args.mode == "size":
                out.write(b"%d\n" % obj.raw_length())
            else:
                out.write(obj.as_pretty_string())


def _lookup_object(repo: Repo, spec: str) -> ShaFile:
    """Find the object named by 'REF:PATH' or by a ref or object id."""
    if ":" in spec:
        ref, path = spec.split(":", 1)
        return repo.get_object(repo.resolve(ref, path))
    return repo.get_object(repo.resolve_ref(spec))


class cmd_ls_tree(Command):
    """List the contents of a tree object."""

    help = "List the contents of a tree object"

    def run(self, args: Sequence[str]) -> None:
        """Execute the ls-tree command.

        Args:
            args: Command line arguments
        """
        parser = argparse.ArgumentParser(prog="ls-tree")
        parser.add_argument("ref", help="Commit or tree to list")
        parser.add_argument("path", nargs="?", help="Directory inside the tree")
        parsed_args = parser.parse_args(args)
        with self.open_repo() as repo:
            if parsed_args.path:
                tree = repo.get_object(
                    repo.resolve(parsed_args.ref, parsed_args.path)
                ).as_tree()
            else:
                obj = repo.get_object(repo.resolve_ref(parsed_args.ref))
                if obj.type_name == b"commit":
                    obj = repo.get_object(obj.as_commit().tree)
                tree = obj.as_tree()
            _stdout().write(tree.as_pretty_string())


class cmd_show_ref(Command):
    """List references in a local repository."""

    help = "List references in a local repository"

    def run(self, args: Sequence[str]) -> int | None:
        """Execute the show-ref command.

        Args:
            args: Command line arguments
        Returns:
            Exit code (1 if there are no refs to show)
        """
        parser = argparse.ArgumentParser(prog="show-ref")
        parser.add_argument(
            "--head",
            action="store_true",
            help="Show the HEAD reference",
        )
        parsed_args = parser.parse_args(args)
        with self.open_repo() as repo:
            refs = repo.get_refs()
        out = _stdout()
        shown = 0
        for name, sha in sorted(refs.items()):
            if name == HEADREF and not parsed_args.head:
                continue
            out.write(sha + b" " + name + b"\n")
            shown += 1
        return 0 if shown else 1


class cmd_verify_pack(Command):
    """Verify the checksums and contents of a pack file."""

    help = "Verify the checksums and contents of a pack file"

    def run(self, args: Sequence[str]) -> None:
        """Execute the verify-pack command.

        Args:
            args: Command line arguments
        """
        parser = argparse.ArgumentParser(prog="verify-pack")
        parser.add_argument(
            "-v", "--verbose", action="store_true", help="List every object"
        )
        parser.add_argument("filename", help="Pack (.pack or .idx) file to verify")
        parsed_args = parser.parse_args(args)
        basename, _ = os.path.splitext(parsed_args.filename)
        out = _stdout()
        with Pack(basename) as pack:
            pack.check_length_and_checksum()
            pack.check()
            if parsed_args.verbose:
                for sha, type_num, size, offset in sorted(
                    pack.iterentries(), key=lambda entry: entry[3]
                ):
                    obj_class = object_class(type_num)
                    assert obj_class is not None
                    out.write(
                        sha
                        + b" "
                        + obj_class.type_name.ljust(6)
                        + b" %d %d\n" % (size, offset)
                    )
            logger.info("%d objects", len(pack))
        out.write(os.fsencode(parsed_args.filename) + b": ok\n")


commands: dict[str, type[Command]] = {
    "cat-file": cmd_cat_file,
    "ls-tree": cmd_ls_tree,
    "rev-parse": cmd_rev_parse,
    "show-ref": cmd_show_ref,
    "verify-pack": cmd_verify_pack,
}


def main(argv: Sequence[str] | None = None) -> int | None:
    """Main entry point for the gitreader CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code or None
    """
    if argv is None:
        argv = sys.argv[1:]

    parser = argparse.ArgumentParser(
        prog="gitreader",
        description="Read objects and refs from a git repository",
    )
    parser.add_argument(
        "-C",
        "--git-dir",
        dest="git_dir",
        metavar="PATH",
        help="Repository to read (default: GIT_DIR, or discover from cwd)",
    )
    parser.add_argument(
        "command",
        nargs="?",
        help=f"Command to run. Available: {', '.join(sorted(commands))}",
    )
    parser.add_argument("args", nargs=argparse.REMAINDER, help=argparse.SUPPRESS)
    parsed_args = parser.parse_args(argv)

    if parsed_args.command is None:
        parser.print_help()
        return 1

    default_logging_config()

    try:
        cmd_kls = commands[parsed_args.command]
    except KeyError:
        logger.fatal("No such subcommand: %s", parsed_args.command)
        return 1
    try:
        return cmd_kls(parsed_args.git_dir).run(parsed_args.args)
    except _REPORTED_ERRORS as e:
        logger.error("%s", e)
        return 1


def _main() -> None:
    signal.signal(signal.SIGINT, signal_int)

    sys.exit(main())


if __name__ == "__main__":
    _main()
