"""
ClaimPortal - device insurance claim intake and adjudication.
"""
