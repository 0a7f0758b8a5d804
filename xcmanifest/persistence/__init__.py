"""
xcmanifest persistence

Reading and writing project.pbxproj and .xcscheme files.
"""

from .pbxproj_file import ProjectFile, kind_of, pbxproj_path_for
from .scheme_file import SchemeFiles

__all__ = ["ProjectFile", "SchemeFiles", "kind_of", "pbxproj_path_for"]
