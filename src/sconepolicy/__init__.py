"""
sconepolicy: OTP and cosign policy sessions on SCONE CAS.
"""

__version__ = "0.1.1"
