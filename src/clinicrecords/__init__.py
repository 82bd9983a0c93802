"""
Clinic records core: versioned medical records, prescription lifecycle and
compliance audit log.
"""

__version__ = "0.1.0"
