"""
Async file I/O utilities
Wraps blocking filesystem operations used on project directories so they do
not block the event loop.
"""
import asyncio
import os
import shutil


async def rmtree_async(path: str) -> bool:
    """
    Async shutil.rmtree.

    Args:
        path: Directory path to remove

    Returns:
        True if the directory existed and was removed, False if it was absent
    """
    def _rmtree(directory: str) -> bool:
        if not os.path.exists(directory):
            return False
        shutil.rmtree(directory)
        return True

    return await asyncio.to_thread(_rmtree, path)


async def copy_tree_async(src: str, dst: str) -> None:
    """
    Async directory tree copy; existing files in dst are overwritten.

    Args:
        src: Source directory
        dst: Destination directory
    """
    await asyncio.to_thread(shutil.copytree, src, dst, dirs_exist_ok=True)


async def write_file_async(file_path: str, content: str, encoding: str = 'utf-8') -> None:
    """
    Async file write, creating parent directories.

    Args:
        file_path: Path to file
        content: Content to write
        encoding: Character encoding
    """
    def _write():
        os.makedirs(os.path.dirname(file_path), exist_ok=True)
        with open(file_path, 'w', encoding=encoding) as f:
            f.write(content)

    await asyncio.to_thread(_write)


async def path_exists_async(path: str) -> bool:
    """
    Async path existence check

    Args:
        path: Path to check

    Returns:
        True if path exists
    """
    return await asyncio.to_thread(os.path.exists, path)
