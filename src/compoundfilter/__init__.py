"""
compoundfilter - Compound filter editing and conversion.

This package maintains user-built boolean filter trees, removes logical NOT
by De Morgan rewriting, and converts the result into the depth-bounded
filter objects accepted by a remote database API.
"""

__version__ = "0.1.0"
