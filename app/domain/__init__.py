"""
Pure payment domain: card number validation and the transaction aggregate.

Nothing in this package performs I/O or reads the clock. The service layer
loads data, hands it to these types, and persists what they allow.
"""
