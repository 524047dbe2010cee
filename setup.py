from setuptools import find_packages, setup

setup(
    name="pytest_test_class",
    version="0.0.1",
    author="Modal Labs",
    package_dir={"": "src"},
    packages=find_packages("src"),
    # the following makes a plugin available to pytest
    entry_points={"pytest11": ["pytest_test_class = pytest_test_class.plugin"]},
    # custom PyPI classifier for pytest plugins
    classifiers=["Framework :: Pytest"],
    python_requires=">=3.9",
    install_requires=["pytest>=8.0"],
    extras_require={"test": ["pytest>=8.0"]},
)
