"""
ar2so — repackage a static archive as a freestanding shared object.

The archive members are extracted, a linker script with a curated
version map is synthesized, and an external GNU-compatible ``ld`` does
the actual linking.
"""

__version__ = "0.1.0"
PACKAGE_NAME = "ar2so"
SCHEMA_VERSION = "0.1"
