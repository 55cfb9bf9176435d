import uuid
from pathlib import Path
from typing import Optional

KILOBYTE = 1024
MEGABYTE = KILOBYTE * 1024
GIGABYTE = MEGABYTE * 1024

def base_name(filename: str) -> str:
    """
    Strip any directory components from a client-supplied filename.
    Both separators are handled since the name may come from any platform.
    """
    return filename.replace("\\", "/").rsplit("/", 1)[-1]

def file_extension(filename: str) -> Optional[str]:
    """
    Return the substring after the last '.' of the file's base name.

    Returns None when the name has no '.', and an empty string when the
    name ends with one.
    """
    name = base_name(filename)
    if "." not in name:
        return None
    return name.rsplit(".", 1)[1]

def stored_file_name(filename: str) -> str:
    """
    Generate the on-disk name for an uploaded file: <uuid>.<extension>,
    or just <uuid> when the original name has no '.' at all. A name
    ending in '.' keeps the dot: <uuid>.
    """
    generated_id = str(uuid.uuid4())
    extension = file_extension(filename)
    if extension is None:
        return generated_id
    return f"{generated_id}.{extension}"

def ensure_directory_exists(directory_path: Path) -> None:
    """
    Ensure that a directory exists, creating it if necessary.
    """
    directory_path.mkdir(parents=True, exist_ok=True)

def format_bytes(size: int) -> str:
    """
    Human readable size used in the staged file list.
    """
    if size < KILOBYTE:
        return f"{size} bytes"
    if size < MEGABYTE:
        return f"{size / KILOBYTE:.2f} KB"
    if size < GIGABYTE:
        return f"{size / MEGABYTE:.2f} MB"
    return f"{size / GIGABYTE:.2f} GB"
