"""
API层
"""
