"""
Actuary - Checks Package

This package contains the bundled audit checks, one module per category.
Each module holds check classes that inherit from
actuary.core.check.BaseCheck; the registry discovers them by scanning
the package.
"""
