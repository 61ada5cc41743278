"""
Extraction of pulled artifact archives.

Artifacts are distributed as gzip-compressed tarballs. Only regular files and
directories are materialized; links, devices and any member that would land
outside the destination directory are rejected.
"""

from __future__ import annotations

import shutil
import tarfile
from pathlib import Path, PurePosixPath
from typing import BinaryIO, Callable

from .cancel import CancelToken
from .errors import ArchiveError

Extractor = Callable[..., list[str]]


def _member_target(dest_dir: Path, member_name: str, strip_components: int) -> Path | None:
    """
    Map a tar member name to its destination path.

    Returns None when stripping consumes the whole name.
    """
    posix = PurePosixPath(member_name)
    if posix.is_absolute():
        raise ArchiveError(f"archive member {member_name!r} has an absolute path")

    parts = [p for p in posix.parts if p not in ("", ".")]
    if ".." in parts:
        raise ArchiveError(f"archive member {member_name!r} escapes the destination directory")

    parts = parts[strip_components:]
    if not parts:
        return None
    return dest_dir.joinpath(*parts)


def extract_tar_gz(
    stream: BinaryIO,
    dest_dir: str | Path,
    strip_components: int = 0,
    token: CancelToken | None = None,
) -> list[str]:
    """
    Extract a .tar.gz stream into `dest_dir`.

    Args:
        stream: Readable binary stream positioned at the start of the archive
        dest_dir: Directory to extract into (created if needed)
        strip_components: Leading path components to drop from member names
        token: Optional cancellation token, checked between members

    Returns:
        Paths of the extracted regular files, in archive order.

    Raises:
        ArchiveError: Unsafe member, unsupported member type, or corrupt archive.
    """
    dest = Path(dest_dir)
    dest.mkdir(parents=True, exist_ok=True)
    extracted: list[str] = []

    try:
        with tarfile.open(fileobj=stream, mode="r|gz") as tar:
            for member in tar:
                if token is not None:
                    token.check()

                target = _member_target(dest, member.name, strip_components)
                if target is None:
                    continue

                if member.isdir():
                    target.mkdir(parents=True, exist_ok=True)
                elif member.isfile():
                    source = tar.extractfile(member)
                    if source is None:
                        raise ArchiveError(f"unable to read archive member {member.name!r}")
                    target.parent.mkdir(parents=True, exist_ok=True)
                    with source, open(target, "wb") as out:
                        shutil.copyfileobj(source, out)
                    target.chmod(member.mode & 0o777 or 0o600)
                    extracted.append(str(target))
                else:
                    raise ArchiveError(f"unsupported archive member type for {member.name!r}")
    except (tarfile.TarError, EOFError) as e:
        raise ArchiveError(f"unable to extract archive: {e}") from e

    return extracted
