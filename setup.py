"""Setup configuration for statstracker"""

from setuptools import setup, find_packages

setup(
    name="statstracker",
    version="0.1.0",
    description=(
        "CLI tools for engineering stats: GitHub pull-request review latency, "
        "Cloud Deploy commit-to-deploy latency and CircleCI flaky tests."
    ),
    author="Stats Tracker Contributors",
    author_email="",
    python_requires=">=3.10",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    install_requires=[
        "requests>=2.28.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0",
            "black>=22.0",
            "flake8>=4.0",
            "mypy>=0.950",
        ],
    },
    entry_points={
        "console_scripts": [
            "pr-tracker=statstracker.main:pr_tracker_main",
            "deploy-tracker=statstracker.main:deploy_tracker_main",
            "flaky-tests=statstracker.main:flaky_tests_main",
        ],
    },
)
