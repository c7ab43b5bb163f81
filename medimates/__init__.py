"""
MediMates 用药计划与依从性跟踪服务
"""
__version__ = "1.0.0"
