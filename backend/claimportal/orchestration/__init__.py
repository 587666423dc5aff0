"""
Claim orchestration package
"""
