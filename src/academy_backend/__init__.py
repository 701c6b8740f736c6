"""
Academy Backend: lesson packages, weekly scheduling and the lesson wallet ledger.
"""
