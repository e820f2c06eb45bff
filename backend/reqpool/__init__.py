"""
需求池管理系统后端
"""
__version__ = "1.0.0"
