"""
端口探测器模块入口点
"""

from .cli import main

if __name__ == "__main__":
    main()
