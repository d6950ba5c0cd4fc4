"""Location lookups."""

from .zipcode import ZipCodeLookup, ZipLocation, clean_zip

__all__ = ["ZipCodeLookup", "ZipLocation", "clean_zip"]
