"""
Export of split results.
"""

from .export import ObjExporter, save_fragments, write_obj

__all__ = ['ObjExporter', 'save_fragments', 'write_obj']
