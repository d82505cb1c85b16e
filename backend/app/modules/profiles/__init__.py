"""
Profile Management Module

Operator endpoints for the scrape target list: add, bulk add, approve,
retag and delete LinkedIn profiles, and remove industries.
"""
