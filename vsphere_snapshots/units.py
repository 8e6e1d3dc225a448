"""Byte size constants and formatting (binary multiples)."""

KB = 1024
MB = KB * 1024
GB = MB * 1024
TB = GB * 1024
PB = TB * 1024
EB = PB * 1024

_SUFFIXES = (
    (EB, "EB"),
    (PB, "PB"),
    (TB, "TB"),
    (GB, "GB"),
    (MB, "MB"),
    (KB, "KB"),
)


def byte_size_hr(size: int) -> str:
    """Human readable size, e.g. ``3.5GB`` or ``512B``."""
    for unit, suffix in _SUFFIXES:
        if size >= unit:
            return f"{size / unit:.1f}{suffix}"
    return f"{size}B"
