"""Signing Package Builder.

Assembles lender-specific mortgage closing-document packages from a
declarative manifest, a CRM record and a set of PDF templates, and computes
the cost-of-borrowing / APR disclosure figures that feed those templates.
"""

__version__ = "1.0.0"
