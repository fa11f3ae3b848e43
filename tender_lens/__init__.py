"""
TenderLens — Portfolio fit analysis for legal and tender documents

Checks a vendor's offerings against an uploaded tender PDF using Gemini:
grounded market context, schema-constrained analysis, and a composed
result record for the dashboard.
"""

__version__ = "1.0.0"
__author__ = "TenderLens"
