"""
应用层：配置、API 路由与中间件
"""
