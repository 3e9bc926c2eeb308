# filesystem.py
from pathlib import Path
from typing import BinaryIO, List, NamedTuple


class DirEntry(NamedTuple):
    name: str
    is_dir: bool


class LocalFileSystem:
    """
    The filesystem operations the pipeline needs.
    Tests substitute an in-memory object with the same four methods.
    """

    def list_dir(self, directory: Path) -> List[DirEntry]:
        # Non-recursive; raises OSError if the directory cannot be listed
        return [DirEntry(entry.name, entry.is_dir()) for entry in Path(directory).iterdir()]

    def get_size(self, filepath: Path) -> int:
        return Path(filepath).stat().st_size

    def open(self, filepath: Path) -> BinaryIO:
        return Path(filepath).open("rb")

    def remove(self, filepath: Path):
        Path(filepath).unlink()
