#!/usr/bin/env python3
"""
irpipe Python Package Setup
===========================

Install the irpipe pass pipeline manager.

Install:
    pip install .

Development:
    pip install -e ".[dev]"
"""

from setuptools import setup, find_packages
import os


def read_version():
    init_py = os.path.join(os.path.dirname(__file__), 'python', 'irpipe', '__init__.py')
    with open(init_py, encoding='utf-8') as f:
        for line in f:
            if line.startswith('__version__'):
                # __version__ = "0.1.0"
                return line.split('=', 1)[1].strip().strip('"').strip("'")
    return '0.0.0'


# Read README for long description
def read_readme():
    readme_path = os.path.join(os.path.dirname(__file__), 'README.md')
    if os.path.exists(readme_path):
        with open(readme_path, encoding='utf-8') as f:
            return f.read()
    return "irpipe - textual pass pipelines, verification and source emission for an in-memory IR"


setup(
    name='irpipe',
    version=read_version(),
    author='irpipe Project',
    description='Pass pipeline manager: parse, print, run and emit IR pass pipelines',
    long_description=read_readme(),
    long_description_content_type='text/markdown',

    packages=find_packages(where='python'),
    package_dir={'': 'python'},

    python_requires='>=3.9',
    install_requires=[],
    extras_require={
        'dev': [
            'pytest>=6.0',
            'pytest-cov',
            'black',
            'mypy',
        ],
    },

    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Developers',
        'Topic :: Software Development :: Compilers',
        'License :: OSI Approved :: Apache Software License',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
    ],

    zip_safe=False,
)
