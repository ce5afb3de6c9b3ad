"""
Setup script for Carbon Growth package
"""

from setuptools import setup, find_packages

setup(
    name='carbon-growth',
    version='0.1.0',
    author='Carbon Growth contributors',
    description='Bayesian population-growth models for radiocarbon date frequencies',
    license='MIT',

    # Package discovery from src/
    packages=find_packages(where="src"),
    package_dir={"": "src"},

    python_requires='>=3.10',

    install_requires=[
        'numpy>=1.23.0,<2.4',
        'scipy>=1.9.0',
        'pandas>=1.5.0',
        'matplotlib>=3.5.0',
        'seaborn>=0.11.0',
        'tqdm>=4.62.0',
        'pymc>=5.10.0',  # Modern PyMC (v5+)
        'pytensor>=2.18.0',  # Modern backend
        'arviz>=0.17.0,<1.0',
    ],

    extras_require={
        'dev': [
            'pytest>=7.0.0',
            'pytest-cov>=3.0.0',
            'black>=22.0.0',
            'flake8>=4.0.0',
        ],
    },

    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Science/Research',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Topic :: Scientific/Engineering',
    ],

    keywords='radiocarbon archaeology demography bayesian-inference pymc mcmc',
)
