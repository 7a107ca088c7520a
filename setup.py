from setuptools import setup, find_packages

setup(
    name='autoupdateplugins',
    version='0.1.0',
    package_dir={'': 'src'},
    packages=find_packages(where='src'),
    python_requires='>=3.8',
    install_requires=[
        'requests[socks]',
        'urllib3',
        'PyYAML',
        'platformdirs',
        'rich',
    ],
    extras_require={
        'test': [
            'pytest',
            'pytest-mock',
        ],
    },
    entry_points={
        'console_scripts': [
            'autoupdateplugins=autoupdateplugins.cli:main',
        ],
    },
)
