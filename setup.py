from setuptools import setup, find_namespace_packages

setup(
    name='atmfjstc-pak-file',
    version='0.1.0',

    author_email='atmfjstc@protonmail.com',

    package_dir={'': 'src'},
    packages=find_namespace_packages(where='src', include=['atmfjstc.*']),

    install_requires=[
        'atmfjstc-binary-utils>=1.2, <2',
        'lz4>=3, <5',
        'termcolor>=1',
        'colorama>=0.4.6, <2',
    ],

    extras_require={
        'test': [
            'pytest>=7',
        ],
    },

    entry_points={
        'console_scripts': [
            'pak-tool=atmfjstc.lib.pak_file.cli:main',
        ],
    },

    zip_safe=True,

    description="Read-only interface for LSPK (.pak) archives and LSF document headers",

    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Environment :: Console",
        "Topic :: System :: Archiving :: Compression",
        "Typing :: Typed",
    ],
    python_requires='>=3.7',
)
