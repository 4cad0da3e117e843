from setuptools import setup, find_packages


setup(
    name='torch_aisolve',
    version='0.1.0',
    packages=find_packages(include=['torch_aisolve', 'torch_aisolve.*']),
    python_requires='>=3.8',
    install_requires=[
        'torch>=1.13.0',
        'numpy',
        'scipy',
    ],
    extras_require={
        'test':['pytest'],
    }
)
