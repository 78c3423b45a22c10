"""
Setup script for fusebridge
"""

import os

from setuptools import setup, find_packages


def read_file(filename):
    path = os.path.join(os.path.dirname(__file__), filename)
    if not os.path.exists(path):
        return ''
    with open(path, encoding='utf-8') as f:
        return f.read()


setup(
    name='fusebridge',
    version='1.0.0',
    description='Mount asyncio filesystem adapters through FUSE',
    long_description=read_file('README.md'),
    long_description_content_type='text/markdown',
    license='Apache License 2.0',

    packages=find_packages(exclude=['tests', 'tests.*']),

    install_requires=[
        'fusepy>=3.0.1',
        'click>=8.1.3',
        'tabulate>=0.9.0',
        'python-json-logger>=2.0.7',
    ],

    extras_require={
        'dev': [
            'pytest>=7.4.0',
            'pytest-cov>=4.1.0',
            'pytest-mock>=3.11.1',
            'mock>=5.1.0',
        ],
    },

    entry_points={
        'console_scripts': [
            'fusebridge=fusebridge.cli:main',
        ],
    },

    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: Developers',
        'License :: OSI Approved :: Apache Software License',
        'Operating System :: POSIX :: Linux',
        'Operating System :: MacOS',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.8',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Topic :: System :: Filesystems',
    ],
    python_requires='>=3.8',
)
