"""
The Product Report - backend API package
"""
