"""
Code indexers: turn a source tree into CodeBlocks for ingestion.
"""

from .python_blocks import PythonBlockExtractor, index_directory, iter_python_files, outgoing_calls

__all__ = [
    'PythonBlockExtractor',
    'index_directory',
    'iter_python_files',
    'outgoing_calls',
]
