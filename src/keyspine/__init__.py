"""
keyspine - sortable composite keys for key-value stores.

- keyspine.core: errors, results, logging and settings
- keyspine.keys: pattern compiler, conversion engine, sortability advisor,
  key extraction and index definitions
- keyspine.cli: ``keyspine`` command line
"""

__version__ = "0.1.0"

from keyspine.keys import *  # noqa
