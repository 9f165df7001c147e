"""
ModHub background worker.
"""
