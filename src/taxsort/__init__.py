"""
Bank/card statement PDF → structured transactions → tax categories.

A deterministic, testable pipeline that recovers text from raw statement
PDFs, parses institution-specific transaction lines with a parser
confidence signal, and classifies each transaction against a tax taxonomy
with an explicit human-review flag.
"""

__version__ = "0.1.0"
