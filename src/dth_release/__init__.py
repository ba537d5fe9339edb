"""
DTH Release: vehicle release portal for DTH Logistics.

Dispatch creates loads with a secret PIN and a QR verification link; the
dealer scans the code at pickup and confirms release with the PIN, once.
"""

__version__ = "0.1.0"
