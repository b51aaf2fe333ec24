"""
Command line adapter
"""
