"""
IFRS Bridge: GAAP to IFRS statement conversion.

Parses uploaded statements into flat records, offers a row/column view for
editing, and drives a chat-completion model to convert figures to IFRS,
draft disclosures and assess financial health.
"""

__version__ = "0.1.0"
