"""
HealPath: patient care tracking with caregiver delegation.
"""

__version__ = "1.0.0"
