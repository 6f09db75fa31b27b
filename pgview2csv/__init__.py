# pgview2csv/__init__.py

"""
Utility functions for exporting PostgreSQL views to CSV files.

Modules:
- logging_config: Configures logging for project.
- connection_utils: Connection descriptor utilities
- csv_utils: CSV serialization utilities
- export_utils: View export utilities
- file_utils: Configuration and file management utilities
- exceptions: Error types raised by the export
"""

__version__ = '1.0.0'
