"""varlinkage: read-level variant evidence and linkage of nearby variants.

Most users should use the CLI:

    varlinkage link -1 1:12345A>G -2 1:12350_12351insCC --bam reads.bam

"""

from __future__ import annotations

from .link import Link, Linkage
from .models import Edit, Variant, VariantFormat
from .validate import ValidateOptions, validate_entries, validate_read
from .variant import VariantParseError, parse_hgvs, parse_variant, parse_vcf

__all__ = [
    "__version__",
    "Edit",
    "Link",
    "Linkage",
    "ValidateOptions",
    "Variant",
    "VariantFormat",
    "VariantParseError",
    "parse_hgvs",
    "parse_variant",
    "parse_vcf",
    "validate_entries",
    "validate_read",
]

__version__ = "0.1.0"
