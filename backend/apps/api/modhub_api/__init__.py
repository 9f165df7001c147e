"""
ModHub API application.
"""
