"""
Ledger Core

Financial decimal arithmetic engine with an accelerated backend and a
byte-for-byte compatible pure-Python fallback, plus the double-entry
transaction batch validator, processor and categorizer built on it.
"""

__version__ = "1.0.0"
