from setuptools import setup

setup(
    name='spline_regression',
    version='0.1',
    install_requires=['numpy', 'scipy', 'statsmodels'],
    extras_require={'test': ['pytest']},
    packages=['spline_regression'],
)
