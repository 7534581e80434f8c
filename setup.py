#!/usr/bin/env python3
"""
Port Prober 安装脚本
"""

from pathlib import Path
from setuptools import setup, find_packages


# 读取 requirements
def read_requirements():
    requirements_path = Path(__file__).parent / "requirements.txt"
    if requirements_path.exists():
        with open(requirements_path, 'r', encoding='utf-8') as f:
            return [line.strip() for line in f if line.strip() and not line.startswith('#')]
    return []


# 读取 README
def read_readme():
    readme_path = Path(__file__).parent / "README.md"
    if readme_path.exists():
        with open(readme_path, 'r', encoding='utf-8') as f:
            return f.read()
    return ""


if __name__ == "__main__":
    setup(
        name="port-prober",
        version="0.1.0",
        description="有界并发的TCP端口可达性探测工具",
        long_description=read_readme(),
        long_description_content_type="text/markdown",
        packages=find_packages(where="src"),
        package_dir={"": "src"},
        install_requires=read_requirements(),
        extras_require={
            "test": ["pytest>=7.0"],
        },
        python_requires=">=3.8",
        entry_points={
            "console_scripts": [
                "port-prober=port_prober.cli:main",
            ],
        },
        classifiers=[
            "Development Status :: 4 - Beta",
            "Intended Audience :: Developers",
            "Intended Audience :: System Administrators",
            "Topic :: Security",
            "Topic :: System :: Networking",
            "License :: OSI Approved :: MIT License",
            "Programming Language :: Python :: 3",
            "Programming Language :: Python :: 3.8",
            "Programming Language :: Python :: 3.9",
            "Programming Language :: Python :: 3.10",
            "Programming Language :: Python :: 3.11",
            "Programming Language :: Python :: 3.12",
        ],
        zip_safe=False,
    )
