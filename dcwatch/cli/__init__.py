"""
dcwatch command line interface.
"""
