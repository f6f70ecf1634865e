"""
barberslots - appointment availability and booking for barbershops.
"""

__version__ = "0.1.0"
