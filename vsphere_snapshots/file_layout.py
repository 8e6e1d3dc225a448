"""Index of a virtual machine's files keyed by layout file key."""

from typing import Dict, Iterable, List

from .models import FileRecord


class FileLayoutIndex:
    """Lookup from file key to FileRecord for one virtual machine.

    Every file is indexed, not just disk files, since snapshot data files
    and disk chain links are referenced by the same keys. A repeated key
    overwrites the earlier record.
    """

    def __init__(self, files: Iterable[FileRecord]):
        self._files: Dict[int, FileRecord] = {}
        for record in files:
            self._files[record.key] = record

    def size_of(self, key: int) -> int:
        """Size in bytes of the file with the given key, 0 if unknown."""
        record = self._files.get(key)
        return record.size if record else 0

    def total_size(self, keys: Iterable[int]) -> int:
        """Sum of the sizes of the given file keys."""
        return sum(self.size_of(key) for key in keys)

    def disk_files(self) -> List[FileRecord]:
        """Disk descriptor and extent files, in layout order."""
        return [record for record in self._files.values() if record.kind.is_disk]


def build_file_layout_index(files: Iterable[FileRecord]) -> FileLayoutIndex:
    """Build the file index for one machine in a single pass."""
    return FileLayoutIndex(files)
