"""
领域层：用药计划与依从性跟踪
"""
