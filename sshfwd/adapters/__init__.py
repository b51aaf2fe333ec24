"""
Adapters: command line and configuration sources
"""
