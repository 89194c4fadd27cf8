"""
                        PrePlate

Restaurant pre-booking backend: diners browse restaurants, book a table
with a pre-ordered meal and track the order; restaurant accounts work
their incoming orders through the kitchen lifecycle.
"""

__version__ = "1.0.0"
