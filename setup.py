"""
A3S Context Setup Script

Install with: pip install -e .
"""

from setuptools import setup, find_packages

setup(
    name='a3s-context',
    version='0.1.0',
    description='Hierarchical context store with semantic retrieval for AI agents',
    author='A3S Lab',
    packages=find_packages(include=['a3s_context', 'a3s_context.*']),
    install_requires=[
        'fastapi>=0.104.0',
        'uvicorn[standard]>=0.24.0',
        'pydantic>=2.5.0',
        'pyyaml>=6.0.1',
        'numpy>=1.26.0',
        'aiohttp>=3.9.0',
        'structlog>=23.2.0',
        'click>=8.1.0',
    ],
    extras_require={
        'local': [
            'sentence-transformers>=2.2.0',
            'torch>=2.0.0',
        ],
        'test': [
            'pytest>=7.4.0',
            'pytest-asyncio>=0.23.0',
            'httpx>=0.25.0',
        ],
    },
    entry_points={
        'console_scripts': [
            'a3s-ctx=a3s_context.cli:cli',
        ],
    },
    python_requires='>=3.11',
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Developers',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Topic :: Scientific/Engineering :: Artificial Intelligence',
    ],
)
