"""Setup configuration for Terminal Chat."""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as f:
    long_description = f.read()

setup(
    name="terminal-chat",
    version="0.1.0",
    description="Terminal Chat - full-screen TCP chat client with a companion server",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="Terminal Chat Team",
    python_requires=">=3.8",
    packages=find_packages(exclude=["tests"]),
    install_requires=[
        "rich>=13.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "chat-client=client.app:main",
            "chat-server=server.daemon:main",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Environment :: Console",
        "Intended Audience :: End Users/Desktop",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX :: Linux",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Topic :: Communications :: Chat",
    ],
)
