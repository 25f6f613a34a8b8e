"""Flex Media Server backend"""

__version__ = "0.1.0"
