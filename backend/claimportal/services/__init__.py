"""
Claim workflow services
"""
