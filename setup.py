from setuptools import find_packages, setup

setup(
    name='stake-harness',
    version='0.1.0',
    description='Lifecycle verification harness for a staking and round-robin minting token',
    package_dir={'': 'src'},
    packages=find_packages(where='src'),
    include_package_data=True,
    python_requires='>=3.8',
    install_requires=[
        'click>=7.0',
        'rich>=9.0',
        'cryptography>=3.0',
    ],
    extras_require={
        'test': ['pytest>=6.0'],
    },
    entry_points={
        'console_scripts': [
            'stake-harness = stakeharness.cli.main:cli'
        ]
    },
    classifiers=[
        'Programming Language :: Python :: 3',
    ],
)
