"""Archive validation helpers for pgmigrator."""

import posixpath
import tarfile

from pgmigrator.errors import FilesystemError


class ArchiveService:
    """Checks dump archives before they are unpacked into the work directory."""

    def is_within_dir(self, root: str, member_name: str) -> bool:
        normalized = posixpath.normpath(member_name.replace("\\", "/"))
        if normalized.startswith("/") or normalized == ".." or normalized.startswith("../"):
            return False
        return normalized == root or normalized.startswith(f"{root}/")

    def verify_tar_members(self, archive_path: str, expected_root: str) -> int:
        """Ensure every entry lives under ``expected_root``; returns the entry count."""
        try:
            with tarfile.open(archive_path, "r:*") as archive:
                members = archive.getmembers()
        except (tarfile.TarError, OSError) as exc:
            raise FilesystemError(f"Invalid archive: {archive_path}. {exc}") from exc

        if not members:
            raise FilesystemError(f"Archive is empty: {archive_path}")

        for member in members:
            if not self.is_within_dir(expected_root, member.name):
                raise FilesystemError(
                    f"Unsafe archive entry detected: `{member.name}`. "
                    "Extraction aborted to prevent path traversal."
                )
            if member.issym() or member.islnk():
                raise FilesystemError(f"Unsafe archive entry detected: `{member.name}` is a link.")

        return len(members)
