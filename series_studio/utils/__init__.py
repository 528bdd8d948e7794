"""
Utilities
=========

Helper functions for images and project files.
"""

from .image_utils import load_image_as_data_url, parse_data_url, to_data_url, to_inline_part
from .storage import save_project, load_project, project_filename

__all__ = [
    "load_image_as_data_url",
    "parse_data_url",
    "to_data_url",
    "to_inline_part",
    "save_project",
    "load_project",
    "project_filename",
]
