"""
tablemapper: Generic relational record mapper.

Find/create/update/delete/sync over row-oriented data for any table,
without hand-written SQL per table.
"""

__version__ = "0.1.0"
