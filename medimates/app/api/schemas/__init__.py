"""
API 请求/响应 Schema
"""
