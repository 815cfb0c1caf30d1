"""
ProtocolPDF - renders vehicle handover protocols to PDF through a headless browser.
"""

__version__ = "0.1.0"
