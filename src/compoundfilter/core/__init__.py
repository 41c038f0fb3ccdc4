"""Core domain logic package.

This package contains the pure filter tree logic: the model, the editor,
negation normalization, rewriting to the wire format and validation.
Modules here must not talk to the remote API or import UI frameworks.
"""
