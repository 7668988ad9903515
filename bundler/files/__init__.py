from .base_list import list_package_files

__all__ = ["list_package_files"]
